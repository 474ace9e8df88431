import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))


class FakeImageHost:
    """Stands in for the Cloudinary client; records calls and can fail per public id."""

    def __init__(self, fail_ids=()):
        self.fail_ids = set(fail_ids)
        self.uploaded = []
        self.destroyed = []
        self._next = 1

    def upload(self, content, filename):
        from bsm.services.image_host import UploadedImage

        public_id = f"deliveries/img{self._next}"
        self._next += 1
        self.uploaded.append((filename, content))
        return UploadedImage(url=f"https://images.example/{public_id}.jpg", public_id=public_id)

    def destroy(self, public_id):
        from bsm.domain.errors import ImageHostError

        if public_id in self.fail_ids:
            raise ImageHostError(f"Image delete failed for {public_id}: 'error'")
        self.destroyed.append(public_id)


def make_container(tmp_path: Path, name: str = "shop.db", image_host=None):
    from bsm.application.container import build_container
    from bsm.config import Settings

    settings = Settings(secret_key="test-secret")
    return build_container(tmp_path / name, settings, image_host=image_host or FakeImageHost())


def register_user(auth, email: str = "owner@shop.test", password: str = "Water1234"):
    auth.register(email, password, password)
    return email, password
