# univote/routes.py

# JSON API for the election portal. Views stay thin: parse the body, resolve the
# caller, delegate to the account / election services, render the result.

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
from flask_jwt_extended import current_user, get_current_user, jwt_required

from univote import __version__, limiter, token_manager
from univote.authentication.rbac import Permission, rbac_service, require_permission
from univote.database.models import sanitize_user
from univote.errors import ForbiddenError, ValidationError
from univote.operations.health_monitor import check_readiness

bp = Blueprint('api', __name__)


def _accounts():
    return current_app.extensions['univote']['accounts']


def _election():
    return current_app.extensions['univote']['election']


def _json_body():
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object.')
    return data


def _active_user():
    user = current_user
    if user.get('banned'):
        raise ForbiddenError('Account is banned. Contact administration.')
    return user


def _vote_limit():
    return current_app.config['VOTE_RATE_LIMIT']


def _sign_in_limit():
    return current_app.config['SIGN_IN_RATE_LIMIT']


# ------------------------------ operations ------------------------------ #

@bp.get('/health')
def health():
    return jsonify({'status': 'ok'})


@bp.get('/ready')
def ready():
    res = check_readiness(
        current_app.config['DATA_DIR'],
        min_free_gb=current_app.config['MIN_FREE_DISK_GB'],
        check_ntp=current_app.config['HEALTH_CHECK_NTP'],
    )
    return jsonify(res), 200 if res['overall_ok'] else 503


@bp.get('/api/version')
def version():
    return jsonify({'version': __version__, 'timestamp': datetime.now(timezone.utc).isoformat()})


# ------------------------------- accounts ------------------------------- #

@bp.post('/sign-up')
@limiter.limit(_sign_in_limit)
def sign_up():
    user = _accounts().sign_up(_json_body())
    return jsonify({'user': user, 'token': token_manager.generate_token(user)}), 201


@bp.post('/sign-in')
@limiter.limit(_sign_in_limit)
def sign_in():
    data = _json_body()
    user = _accounts().sign_in(data.get('identifier'), data.get('password'))
    return jsonify({'user': user, 'token': token_manager.generate_token(user)})


@bp.get('/me')
@jwt_required()
def me():
    permissions = rbac_service.get_permissions(current_user.get('roles'))
    return jsonify({
        'user': sanitize_user(current_user),
        'permissions': sorted(p.value for p in permissions),
    })


@bp.get('/profile')
@jwt_required()
def profile():
    return jsonify({'profile': sanitize_user(current_user)})


@bp.put('/profile')
@jwt_required()
def update_profile():
    return jsonify(_accounts().update_profile(_active_user()['id'], _json_body()))


@bp.get('/users')
@jwt_required()
@require_permission(Permission.MANAGE_USERS)
def list_users():
    return jsonify({'users': _accounts().list_users()})


@bp.post('/users/<user_id>/toggle-ban')
@jwt_required()
@require_permission(Permission.BAN_USERS)
def toggle_ban(user_id):
    return jsonify(_accounts().toggle_ban(_active_user(), user_id))


@bp.post('/users/<user_id>/toggle-role')
@jwt_required()
@require_permission(Permission.MANAGE_USERS)
def toggle_role(user_id):
    return jsonify(_accounts().toggle_role(_active_user(), user_id, _json_body().get('role')))


# ------------------------------- election ------------------------------- #

@bp.get('/election')
@jwt_required(optional=True)
def get_election():
    return jsonify(_election().get_election(get_current_user()))


@bp.patch('/election/meta')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def update_election_meta():
    return jsonify({'snapshot': _election().update_meta(_active_user(), _json_body())})


@bp.patch('/election/schedule')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def update_election_schedule():
    return jsonify({'snapshot': _election().update_schedule(_active_user(), _json_body())})


@bp.post('/election/phase')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def change_phase():
    snapshot = _election().change_phase(_active_user(), _json_body().get('action'))
    return jsonify({'snapshot': snapshot})


@bp.get('/positions')
def list_positions():
    return jsonify({'positions': _election().list_positions()})


@bp.post('/positions')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def create_position():
    return jsonify(_election().add_position(_active_user(), _json_body())), 201


@bp.delete('/positions/<position_id>')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def delete_position(position_id):
    return jsonify(_election().delete_position(_active_user(), position_id))


@bp.post('/candidates')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def create_candidate():
    return jsonify(_election().create_candidate(_active_user(), _json_body())), 201


@bp.put('/candidates/<candidate_id>')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def update_candidate(candidate_id):
    return jsonify(_election().update_candidate(_active_user(), candidate_id, _json_body()))


@bp.delete('/candidates/<candidate_id>')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def delete_candidate(candidate_id):
    return jsonify(_election().delete_candidate(_active_user(), candidate_id))


@bp.post('/candidates/<candidate_id>/vote-count')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def set_vote_count(candidate_id):
    result = _election().set_vote_count(_active_user(), candidate_id, _json_body().get('newCount'))
    return jsonify(result)


# ------------------------------- ballots -------------------------------- #

@bp.post('/votes')
@jwt_required()
@limiter.limit(_vote_limit)
def cast_vote():
    result = _election().cast_vote(_active_user(), _json_body().get('candidateId'))
    return jsonify(result), 201


@bp.post('/verify-receipt')
def verify_receipt():
    data = _json_body()
    return jsonify(_election().verify_receipt(data.get('verificationCode'), data.get('voteId')))


# ------------------------------- archive -------------------------------- #

@bp.post('/elections/archive')
@jwt_required()
@require_permission(Permission.MANAGE_ELECTION)
def archive_election():
    return jsonify(_election().archive(_active_user(), _json_body())), 201


@bp.get('/elections/history')
def election_history():
    return jsonify(_election().history())


@bp.get('/elections/history/<archive_id>')
def archived_election(archive_id):
    return jsonify(_election().archived_election(archive_id))


# -------------------------------- audit --------------------------------- #

@bp.get('/audit-log')
@jwt_required()
@require_permission(Permission.VIEW_AUDIT_LOG)
def view_audit_log():
    audit_logger = current_app.extensions['univote']['audit']
    limit = request.args.get('limit', default=100, type=int)
    return jsonify({
        'entries': audit_logger.read_entries(limit=max(limit, 1)),
        'intact': audit_logger.verify_log_integrity(),
    })
