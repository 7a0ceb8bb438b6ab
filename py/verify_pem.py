import os
import sys

sys.path.insert(0, os.path.join(os.path.dirname(__file__), '..', 'src'))

from appid import derive_app_id, load_public_key, spki_der
from rsa_keys import public_key_display


def verify_pem(path: str) -> str:
    with open(path, "rb") as f:
        pem = f.read()

    der = spki_der(load_public_key(pem))
    app_id = derive_app_id(der)

    print(f"{path}: {app_id}")
    print(f"  Public key: {public_key_display(der)}")

    # Files written by known_pem.py are named after their appId
    name = os.path.splitext(os.path.basename(path))[0]
    if len(name) == len(app_id) and name != app_id:
        print("  Warning: file name does not match appId")
    return app_id


def main(argv=None) -> int:
    paths = sys.argv[1:] if argv is None else argv
    if not paths:
        print("Usage: python verify_pem.py FILE.pem [FILE.pem ...]")
        return 1

    status = 0
    for path in paths:
        try:
            verify_pem(path)
        except (OSError, ValueError) as e:
            print(f"{path}: Error: {e}")
            status = 1
    return status


if __name__ == "__main__":
    sys.exit(main())
