import pytest

from models.errors import InputNotFoundError
from repositories.file_repository import FileRepository, sanitize_file_name
from services.file_service import FileService
from tests.conftest import make_image


@pytest.fixture
def service(tmp_path):
    return FileService(tmp_path / "uploads", tmp_path / "output")


def test_sanitize_file_name():
    assert sanitize_file_name("red shirt/v2") == "red_shirt_v2"
    assert sanitize_file_name("a  &  b.png") == "a_b.png"
    assert len(sanitize_file_name("x" * 300)) == 100


def test_data_uri_is_used_as_is(service):
    assert service.resolve_input("data:image/png;base64,AAAA") == "data:image/png;base64,AAAA"


def test_resolve_order(service, image_service, tmp_path):
    image = make_image(2, 2, (1, 2, 3))

    direct = image_service.save(image, tmp_path / "output" / "direct.png")
    assert service.resolve_input(str(direct)).startswith("data:image/png;base64,")

    image_service.save(image, tmp_path / "uploads" / "mannequin.jpg")
    assert service.resolve_input("/somewhere/else/mannequin.jpg").startswith("data:image/jpeg;base64,")

    image_service.save(image, tmp_path / "output" / "Shirt" / "Shirt_step2.png")
    resolved = service.resolve_input("/Shirt/Shirt_step2.png")
    assert image_service.decode_data_uri(resolved).get_pixel(0, 0) == (1, 2, 3, 255)


def test_missing_input_lists_candidates(service):
    with pytest.raises(InputNotFoundError) as err:
        service.resolve_input("ghost.png")
    assert isinstance(err.value, FileNotFoundError)
    assert "uploads" in str(err.value)


def test_save_image_adds_extension(service, image_service, tmp_path):
    uri = image_service.encode_data_uri(make_image(2, 2, (9, 9, 9)))
    path = service.save_image(uri, "tops", "red_shirt")
    assert path == tmp_path / "output" / "tops" / "red_shirt.png"
    assert path.is_file()
    assert path.read_bytes()[:4] == b"\x89PNG"
    assert service.public_url(path) == "/api/files/download?path=tops/red_shirt.png"


def test_save_upload_prefixes_kind(service):
    path = service.save_upload(b"raw", "my sheet.xlsx", "excel")
    assert path.name.startswith("excel_")
    assert path.name.endswith("_my_sheet.xlsx")
    assert path.read_bytes() == b"raw"


def test_tree_lists_folders_first(service, tmp_path):
    out = tmp_path / "output"
    (out / "b_folder").mkdir(parents=True)
    (out / "b_folder" / "x.png").write_bytes(b"12345")
    (out / "a.png").write_bytes(b"1")

    listing = service.file_tree()
    assert [item["name"] for item in listing["tree"]] == ["b_folder", "a.png"]
    assert listing["tree"][0]["children"][0]["path"] == "b_folder/x.png"
    assert listing["stats"] == {"folders": 1, "files": 2, "totalSize": 6}


def test_delete_stays_inside_output(service, tmp_path):
    out = tmp_path / "output"
    (out / "tops").mkdir(parents=True)
    (out / "tops" / "a.png").write_bytes(b"1")

    with pytest.raises(PermissionError):
        service.delete("../uploads")
    with pytest.raises(PermissionError):
        service.delete("")
    with pytest.raises(FileNotFoundError):
        service.delete("nothing.png")

    service.delete("tops")
    assert not (out / "tops").exists()


def test_input_outside_the_folders_is_refused(service, tmp_path):
    secret = tmp_path / "secret.txt"
    secret.write_bytes(b"TOP-SECRET-TOKEN")
    with pytest.raises(PermissionError):
        service.resolve_input(str(secret))
    with pytest.raises(PermissionError):
        service.resolve_input("../secret.txt")


def test_extra_input_roots_are_readable(image_service, tmp_path):
    path = image_service.save(make_image(2, 2, (4, 5, 6)), tmp_path / "shared" / "mannequin.png")
    service = FileService(tmp_path / "uploads", tmp_path / "output", input_roots=[tmp_path / "shared"])
    assert service.resolve_input(str(path)).startswith("data:image/png;base64,")
    assert service.local_path(path) == path
    with pytest.raises(PermissionError):
        service.local_path(tmp_path / "elsewhere.xlsx")


def test_save_cannot_leave_the_output_folder(service, image_service, tmp_path):
    uri = image_service.encode_data_uri(make_image(2, 2, (9, 9, 9)))
    with pytest.raises(PermissionError):
        service.save_image(uri, sanitize_file_name(".."), "x")
    assert not (tmp_path / "x.png").exists()

    repository = FileRepository(tmp_path / "output")
    with pytest.raises(PermissionError):
        repository.save("tops", "..", b"raw")
    with pytest.raises(PermissionError):
        repository.save(tmp_path / "elsewhere", "x.png", b"raw")
    assert not (tmp_path / "elsewhere").exists()
