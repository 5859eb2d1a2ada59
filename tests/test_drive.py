import pytest
import requests

from common.drive import Asset, DriveClient, thumbnail_url
from common.errors import AuthExpired, RemoteUnavailable


@pytest.fixture
def drive(settings):
    client = DriveClient(settings)
    yield client
    client.close()


def test_list_files_sends_query_and_bearer_token(drive, settings, requests_mock):
    mock_get = requests_mock.get(
        f"{settings.DRIVE_API_URL}/drive/v3/files",
        json={
            "files": [{"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}],
            "nextPageToken": "next-1",
        },
    )

    page = drive.list_files("tok", "'f' in parents", page_token="p0", page_size=50)

    assert page == {
        "files": [{"id": "a", "name": "a.jpg", "mimeType": "image/jpeg"}],
        "nextPageToken": "next-1",
    }
    request = mock_get.last_request
    assert request.headers["Authorization"] == "Bearer tok"
    assert request.qs["pagetoken"] == ["p0"]
    assert request.qs["pagesize"] == ["50"]


def test_list_files_handles_missing_fields(drive, settings, requests_mock):
    requests_mock.get(f"{settings.DRIVE_API_URL}/drive/v3/files", json={})

    assert drive.list_files("tok", "q") == {"files": [], "nextPageToken": None}


@pytest.mark.parametrize("status_code", [401, 403])
def test_auth_statuses_raise_auth_expired(drive, settings, requests_mock, status_code):
    requests_mock.get(f"{settings.DRIVE_API_URL}/drive/v3/files", status_code=status_code)

    with pytest.raises(AuthExpired) as exc_info:
        drive.list_files("tok", "q")

    assert exc_info.value.status_code == status_code
    assert exc_info.value.phase == "list"


def test_server_error_raises_remote_unavailable(drive, settings, requests_mock):
    requests_mock.get(
        f"{settings.DRIVE_API_URL}/drive/v3/files", status_code=500, text="boom"
    )

    with pytest.raises(RemoteUnavailable):
        drive.list_files("tok", "q")


def test_network_error_raises_remote_unavailable(drive, settings, requests_mock):
    requests_mock.get(
        f"{settings.DRIVE_API_URL}/drive/v3/files",
        exc=requests.exceptions.ConnectionError,
    )

    with pytest.raises(RemoteUnavailable):
        drive.list_files("tok", "q")


def test_download_file(drive, settings, requests_mock):
    mock_get = requests_mock.get(
        f"{settings.DRIVE_API_URL}/drive/v3/files/abc?alt=media", content=b"jpeg-bytes"
    )

    assert drive.download_file("tok", "abc") == b"jpeg-bytes"
    assert mock_get.called


def test_download_file_error_carries_asset_id(drive, settings, requests_mock):
    requests_mock.get(
        f"{settings.DRIVE_API_URL}/drive/v3/files/abc?alt=media", status_code=404
    )

    with pytest.raises(RemoteUnavailable) as exc_info:
        drive.download_file("tok", "abc")

    assert exc_info.value.asset_id == "abc"
    assert exc_info.value.phase == "download"


def test_thumbnail_url_rewrites_size():
    assert thumbnail_url("https://lh3.example/x=s220", 480) == "https://lh3.example/x=s480"
    assert thumbnail_url("https://lh3.example/x", 480) == "https://lh3.example/x=s480"


def test_download_thumbnail(drive, requests_mock):
    mock_get = requests_mock.get("https://lh3.example/x=s480", content=b"png")

    assert drive.download_thumbnail("tok", "https://lh3.example/x=s220", 480) == b"png"
    assert mock_get.last_request.headers["Authorization"] == "Bearer tok"


def test_asset_from_api():
    asset = Asset.from_api(
        {
            "id": "a1",
            "name": "Lake.jpg",
            "mimeType": "image/jpeg",
            "thumbnailLink": "https://t/a1=s220",
            "size": "2048",
        }
    )

    assert asset == Asset("a1", "Lake.jpg", "image/jpeg", "https://t/a1=s220", 2048)
    assert Asset.from_api({"id": "b", "size": "n/a"}).size is None
