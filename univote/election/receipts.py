# univote/election/receipts.py

# Vote receipts: a short verification code derived from the ballot identifiers,
# rendered as a QR image the voter can keep. The code is an integrity check only;
# anyone with access to the ballot ids can recompute it.

import base64
import hashlib
import json
from io import BytesIO

import qrcode

CODE_LENGTH = 16


def verification_code(vote_id: str, user_id: str, candidate_id: str) -> str:
    digest = hashlib.sha256(f"{vote_id}-{user_id}-{candidate_id}".encode()).hexdigest()
    return digest[:CODE_LENGTH].upper()


def generate_qr_data_url(payload: str) -> str:
    """PNG QR code for ``payload`` as a data URL."""
    qr = qrcode.QRCode(box_size=6, border=2)
    qr.add_data(payload)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, format="PNG")
    img_base64 = base64.b64encode(buffered.getvalue()).decode()
    return f"data:image/png;base64,{img_base64}"


def build_receipt(vote: dict, candidate: dict) -> dict:
    receipt = {
        "voteId": vote["id"],
        "candidateId": vote["candidateId"],
        "candidateName": candidate["name"],
        "timestamp": vote["createdAt"],
        "verificationCode": verification_code(vote["id"], vote["userId"], vote["candidateId"]),
    }
    receipt["qrCode"] = generate_qr_data_url(json.dumps(receipt))
    return receipt


def receipt_matches(vote: dict, code: str) -> bool:
    expected = verification_code(vote["id"], vote["userId"], vote["candidateId"])
    return str(code).strip().upper() == expected
