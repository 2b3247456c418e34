import qrcode
import base64
from io import BytesIO

def generate_qr_code(data: str, box_size: int = 10, border: int = 4) -> str:
    """
    Génère un QR code PNG et le retourne en data URL base64.

    Args:
        data: l'URL de reprise du paiement (page payment-flow avec ?data=...)
        box_size: taille d'un module du QR code
        border: largeur de la marge (en modules)

    Returns:
        "data:image/png;base64,<...>"
    """
    # version=None: le payload de paiement dépasse la capacité d'un QR version 1
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=box_size,
        border=border,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")

    buffered = BytesIO()
    img.save(buffered, format="PNG")
    img_str = base64.b64encode(buffered.getvalue()).decode("utf-8")

    return f"data:image/png;base64,{img_str}"
