"""
Attach a Meta Conversions API account to an existing pixel
The access token is stored Fernet-encrypted (see utils.crypto)
"""
import sys
import os

# Add parent directory to path to import backend modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import logger
from core.database import get_db
from models.pixel import Pixel
from utils.crypto import encrypt_token


def seal_meta_token(pixel_id: str, meta_pixel_id: str, access_token: str) -> bool:
    db = next(get_db())
    try:
        pixel = db.query(Pixel).filter(Pixel.id == pixel_id).first()
        if not pixel:
            print(f"✗ Pixel {pixel_id} not found")
            return False

        pixel.meta_pixel_id = meta_pixel_id.strip()
        pixel.meta_access_token_encrypted = encrypt_token(access_token.strip())
        db.commit()
        print(f"✓ Pixel {pixel_id} now forwards to Meta pixel {pixel.meta_pixel_id}")
        print(f"  Tracking URL: {pixel.tracking_url}")
        return True
    except Exception as ex:
        db.rollback()
        logger.error(f"Sealing Meta token failed for pixel {pixel_id}: {ex}")
        raise
    finally:
        db.close()


def clear_meta_token(pixel_id: str) -> bool:
    db = next(get_db())
    try:
        pixel = db.query(Pixel).filter(Pixel.id == pixel_id).first()
        if not pixel:
            print(f"✗ Pixel {pixel_id} not found")
            return False
        pixel.meta_pixel_id = None
        pixel.meta_access_token_encrypted = None
        db.commit()
        print(f"✓ Meta forwarding disabled for pixel {pixel_id}")
        return True
    finally:
        db.close()


if __name__ == "__main__":
    import argparse

    parser = argparse.ArgumentParser(description='Attach or remove a Meta Conversions API account on a pixel')
    parser.add_argument('pixel_id', help='Tracking pixel id')
    parser.add_argument('--meta-pixel-id', help='Meta (Facebook) pixel / dataset id')
    parser.add_argument('--token', default=os.getenv("META_ACCESS_TOKEN", ""),
                        help='Conversions API access token (default: $META_ACCESS_TOKEN)')
    parser.add_argument('--clear', action='store_true', help='Remove the Meta account from the pixel')

    args = parser.parse_args()

    if args.clear:
        ok = clear_meta_token(args.pixel_id)
    else:
        if not args.meta_pixel_id or not args.token:
            parser.error("--meta-pixel-id and --token (or META_ACCESS_TOKEN) are required")
        ok = seal_meta_token(args.pixel_id, args.meta_pixel_id, args.token)

    sys.exit(0 if ok else 1)
