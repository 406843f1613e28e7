"""
File Service Unit Tests
========================

What we test:
    ✅ Blobs land at <upload_root>/<image id>.<extension>
    ✅ Empty and oversized uploads are rejected and leave nothing behind
    ✅ A rejected upload never replaces the previous blob
    ✅ OS errors surface as FileStorageError
"""

import uuid
from unittest.mock import patch

import pytest

from pinpoint.exceptions import FileStorageError, ValidationError
from pinpoint.models import Image
from pinpoint.services.file_service import FileService


async def chunks_of(*parts):
    for part in parts:
        yield part


class TestFileService:
    @pytest.fixture(autouse=True)
    def setup_service(self, tmp_path):
        self.root = tmp_path / "upload"
        self.service = FileService(str(self.root), max_upload_size=1024)
        self.image = Image(id=uuid.uuid4(), user_id=uuid.uuid4(), extension="png", x=0, y=0)

    def test_public_url(self):
        assert self.service.public_url(self.image) == f"/upload/{self.image.id}.png"

    def test_ensure_root_is_idempotent(self):
        assert self.service.ensure_root() == self.root.resolve()
        assert self.service.ensure_root().is_dir()

    @pytest.mark.asyncio
    async def test_store_blob(self, sample_png_bytes):
        path = await self.service.store_blob(
            self.image, chunks_of(sample_png_bytes[:8], b"", sample_png_bytes[8:])
        )
        assert path == self.root.resolve() / f"{self.image.id}.png"
        assert path.read_bytes() == sample_png_bytes
        assert not path.with_name(path.name + ".part").exists()

    @pytest.mark.asyncio
    async def test_empty_body_rejected(self):
        with pytest.raises(ValidationError, match="empty"):
            await self.service.store_blob(self.image, chunks_of())
        assert list(self.root.iterdir()) == []

    @pytest.mark.asyncio
    async def test_reported_size_over_limit(self):
        with pytest.raises(ValidationError, match="exceeds"):
            await self.service.store_blob(self.image, chunks_of(b"x"), content_length=4096)

    @pytest.mark.asyncio
    async def test_actual_size_over_limit_keeps_previous_blob(self):
        await self.service.store_blob(self.image, chunks_of(b"old"))

        with pytest.raises(ValidationError, match="exceeds"):
            await self.service.store_blob(self.image, chunks_of(b"x" * 600, b"x" * 600))

        assert self.service.blob_path(self.image).read_bytes() == b"old"
        assert [p.name for p in self.root.iterdir()] == [f"{self.image.id}.png"]

    @pytest.mark.asyncio
    async def test_os_error(self):
        with patch("pinpoint.services.file_service.os.replace", side_effect=OSError("disk full")):
            with pytest.raises(FileStorageError):
                await self.service.store_blob(self.image, chunks_of(b"data"))
        assert list(self.root.iterdir()) == []
