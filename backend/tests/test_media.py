import os

import pytest
from botocore.stub import Stubber

from lostfound.errors import UploadFailed, ValidationError
from lostfound.integrations.storage import MediaStore
from lostfound.integrations.storage.client import sniff_image

from conftest import png_bytes, png_header


@pytest.fixture
def local(tmp_path):
    return MediaStore(str(tmp_path))


@pytest.fixture
def s3():
    store = MediaStore("/unused", bucket="lf-bucket", region="eu-west-1",
                       access_key_id="test", secret_access_key="test")
    with Stubber(store.client) as stubber:
        yield store, stubber


class TestSniff:
    def test_png(self):
        assert sniff_image(png_bytes()) == "png"

    def test_not_an_image(self):
        with pytest.raises(ValidationError):
            sniff_image(b"%PDF-1.7 not an image")

    def test_empty(self):
        with pytest.raises(ValidationError):
            sniff_image(b"")

    def test_oversized_dimensions(self):
        with pytest.raises(ValidationError):
            sniff_image(png_header(60000, 60000))


class TestLocal:
    def test_store_and_discard(self, local, tmp_path):
        url = local.store(png_bytes(), "reports")
        assert url.startswith("/uploads/reports/") and url.endswith(".png")
        path = tmp_path / url[len("/uploads/"):]
        assert path.is_file()
        local.discard(url)
        assert not path.exists()

    def test_staged_discards_on_failure(self, local, tmp_path):
        with pytest.raises(RuntimeError):
            with local.staged([png_bytes(), png_bytes((0, 0, 255))], "reports") as urls:
                assert len(urls) == 2
                raise RuntimeError("transaction failed")
        assert os.listdir(tmp_path / "reports") == []

    def test_staged_keeps_on_success(self, local, tmp_path):
        with local.staged([png_bytes()], "claims") as urls:
            pass
        assert len(os.listdir(tmp_path / "claims")) == 1
        assert urls[0].startswith("/uploads/claims/")

    def test_discard_ignores_foreign_urls(self, local):
        local.discard("https://elsewhere.example.com/a.png")
        local.discard("/uploads/reports/missing.png")


class TestS3:
    def test_put_object(self, s3):
        store, stubber = s3
        stubber.add_response("put_object", {"ETag": '"abc"'})
        url = store.store(png_bytes(), "reports")
        assert url.startswith("https://lf-bucket.s3.eu-west-1.amazonaws.com/reports/")
        stubber.assert_no_pending_responses()

    def test_client_error_is_upload_failed(self, s3):
        store, stubber = s3
        stubber.add_client_error("put_object", service_error_code="AccessDenied", http_status_code=403)
        with pytest.raises(UploadFailed):
            store.store(png_bytes(), "reports")

    def test_public_url_base(self):
        store = MediaStore("/unused", bucket="b", public_url_base="https://cdn.example.com/")
        assert store.base_url == "https://cdn.example.com"
