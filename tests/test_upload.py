"""Tests for docwiki.upload.UploadProcessor."""

from datetime import date

import pytest

from docwiki.errors import ContentError, ErrorKind
from docwiki.frontmatter import decode
from docwiki.upload import UploadProcessor, check_size


@pytest.fixture
def uploader(store) -> UploadProcessor:
    return UploadProcessor(store)


class TestTargetPath:
    @pytest.mark.parametrize(
        "filename,destination,expected",
        [
            ("logo.png", "", "logo.png"),
            ("logo.png", "assets/images", "assets/images/logo.png"),
            ("logo.png", "/assets/", "assets/logo.png"),
            ("logo.png", "assets/brand.png", "assets/brand.png"),
            ("C:\\Users\\me\\logo.png", "assets", "assets/logo.png"),
        ],
    )
    def test_target_path(self, uploader, filename, destination, expected):
        assert uploader.target_path(filename, destination) == expected

    def test_missing_name(self, uploader):
        with pytest.raises(ContentError) as exc:
            uploader.target_path("", "assets")
        assert exc.value.kind is ErrorKind.MISSING_PARAMETER


class TestProcess:
    @pytest.mark.asyncio
    async def test_writes_file(self, uploader, content_root):
        result = await uploader.process("logo.png", b"\x89PNG data", destination="assets")

        assert result.path == "assets/logo.png"
        assert result.file.name == "logo.png"
        assert result.file.size == 9
        assert result.processed is False
        assert (content_root / "assets" / "logo.png").read_bytes() == b"\x89PNG data"

    @pytest.mark.asyncio
    async def test_disallowed_extension_writes_nothing(self, uploader, content_root):
        with pytest.raises(ContentError) as exc:
            await uploader.process("run.exe", b"MZ", destination="bin")

        assert exc.value.kind is ErrorKind.UPLOAD_REJECTED
        assert exc.value.status_code == 400
        assert not (content_root / "bin").exists()

    @pytest.mark.asyncio
    async def test_extension_check_is_case_insensitive(self, uploader):
        result = await uploader.process("PHOTO.JPG", b"jpeg", allowed_extensions=["jpg"])
        assert result.path == "PHOTO.JPG"

    @pytest.mark.asyncio
    async def test_oversize_writes_nothing(self, uploader, content_root):
        with pytest.raises(ContentError) as exc:
            await uploader.process("big.txt", b"x" * 11, max_size_bytes=10)

        assert exc.value.kind is ErrorKind.UPLOAD_REJECTED
        assert exc.value.details == {"size": 11, "maxSize": 10}
        assert not (content_root / "big.txt").exists()

    def test_check_size_bounds(self):
        check_size(10, max_size_bytes=10)

        with pytest.raises(ContentError) as exc:
            check_size(11, max_size_bytes=10)
        assert exc.value.kind is ErrorKind.UPLOAD_REJECTED

    @pytest.mark.asyncio
    async def test_existing_target(self, uploader, content_root):
        await uploader.process("notes.txt", b"first")

        with pytest.raises(ContentError) as exc:
            await uploader.process("notes.txt", b"second")
        assert exc.value.kind is ErrorKind.ALREADY_EXISTS
        assert (content_root / "notes.txt").read_bytes() == b"first"

        await uploader.process("notes.txt", b"second", overwrite=True)
        assert (content_root / "notes.txt").read_bytes() == b"second"

    @pytest.mark.asyncio
    async def test_traversal_rejected(self, uploader):
        with pytest.raises(ContentError) as exc:
            await uploader.process("x.txt", b"x", destination="../outside")
        assert exc.value.kind is ErrorKind.INVALID_PATH


class TestMarkdownProcessing:
    @pytest.mark.asyncio
    async def test_markdown_without_frontmatter_gets_defaults(self, uploader, content_root):
        result = await uploader.process(
            "getting-started.md", b"# Hello\n\nBody\n", destination="guides", process_markdown=True
        )

        assert result.processed is True
        fm, body = decode((content_root / "guides" / "getting-started.md").read_text())
        assert fm.title == "Getting Started"
        assert fm.last_updated == date.today().isoformat()
        assert body == "# Hello\n\nBody\n"

    @pytest.mark.asyncio
    async def test_existing_frontmatter_is_kept(self, uploader, content_root):
        raw = b"---\ntitle: Mine\ntags: a, b\nowner: docs\n---\n\nBody\n"

        await uploader.process("page.md", raw, process_markdown=True)

        fm, body = decode((content_root / "page.md").read_text())
        assert fm.title == "Mine"
        assert fm.tags == ["a", "b"]
        assert fm.extra == {"owner": "docs"}
        assert fm.last_updated is None
        assert body == "Body\n"

    @pytest.mark.asyncio
    async def test_invalid_utf8_markdown_rejected(self, uploader, content_root):
        with pytest.raises(ContentError) as exc:
            await uploader.process("bad.md", b"\xff\xfe", process_markdown=True)
        assert exc.value.kind is ErrorKind.UPLOAD_REJECTED
        assert not (content_root / "bad.md").exists()

    @pytest.mark.asyncio
    async def test_non_markdown_is_not_processed(self, uploader):
        result = await uploader.process("data.csv", b"a,b\n", process_markdown=True)
        assert result.processed is False

    @pytest.mark.asyncio
    async def test_upload_invalidates_index(self, content_root):
        from docwiki.store import ContentStore

        store = ContentStore(content_root, index_ttl=300)
        assert await store.list() == []

        await UploadProcessor(store).process("new.md", b"# New\n", process_markdown=True)

        assert [m.path for m in await store.list()] == ["new.md"]
