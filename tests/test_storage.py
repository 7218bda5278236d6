import json
import os
import tarfile

import pytest

from imgpull.modules.errors import ImagePullError
from imgpull.modules.keepers import DirectorySink, SavedManifestEntry, TarArchiveSink, open_sink

from .conftest import digest_of

CONFIG = b'{"os": "linux"}'
LAYER_A = b"layer-a"
LAYER_B = b"layer-b"


def _entry():
    return SavedManifestEntry(
        config=digest_of(CONFIG),
        repo_tags=["quay.io/org/app:1.2"],
        layers=[digest_of(LAYER_A), digest_of(LAYER_B)],
    )


def _fill(sink):
    sink.write_config(digest_of(CONFIG), CONFIG)
    sink.write_layer(digest_of(LAYER_A), LAYER_A)
    sink.write_layer(digest_of(LAYER_B), LAYER_B)
    sink.write_index([_entry()])


def test_saved_manifest_entry_uses_docker_save_keys():
    assert _entry().to_dict() == {
        "Config": digest_of(CONFIG),
        "RepoTags": ["quay.io/org/app:1.2"],
        "Layers": [digest_of(LAYER_A), digest_of(LAYER_B)],
    }


def test_tar_archive_layout(tmp_path):
    path = tmp_path / "app.tar"

    with TarArchiveSink(str(path)) as sink:
        _fill(sink)

    with tarfile.open(path) as tar:
        members = tar.getmembers()
        assert [m.name for m in members] == [
            "manifest.json",
            digest_of(CONFIG),
            digest_of(LAYER_A),
            digest_of(LAYER_B),
        ]
        assert all(m.mode == 0o644 for m in members)
        index = json.loads(tar.extractfile("manifest.json").read())
        assert tar.extractfile(digest_of(LAYER_B)).read() == LAYER_B

    assert index == [_entry().to_dict()]


def test_tar_archive_stores_repeated_layer_once(tmp_path):
    path = tmp_path / "dup.tar"

    with TarArchiveSink(str(path)) as sink:
        sink.write_config(digest_of(CONFIG), CONFIG)
        sink.write_layer(digest_of(LAYER_A), LAYER_A)
        sink.write_layer(digest_of(LAYER_A), LAYER_A)
        sink.write_index([_entry()])

    with tarfile.open(path) as tar:
        assert tar.getnames() == ["manifest.json", digest_of(CONFIG), digest_of(LAYER_A)]


def test_tar_archive_creates_parent_and_cleans_staging(tmp_path):
    path = tmp_path / "nested" / "out" / "app.tar"
    sink = TarArchiveSink(str(path))
    staging = sink._staging.name

    _fill(sink)
    sink.close()

    assert path.exists()
    assert not os.path.exists(staging)


def test_tar_archive_not_written_without_index(tmp_path):
    path = tmp_path / "partial.tar"

    with TarArchiveSink(str(path)) as sink:
        sink.write_config(digest_of(CONFIG), CONFIG)

    assert not path.exists()


def test_directory_sink_names_blobs_by_digest(tmp_path):
    out = tmp_path / "image"

    with DirectorySink(str(out)) as sink:
        _fill(sink)

    assert sorted(os.listdir(out)) == sorted(
        ["manifest.json", digest_of(CONFIG), digest_of(LAYER_A), digest_of(LAYER_B)]
    )
    assert (out / digest_of(LAYER_A)).read_bytes() == LAYER_A
    assert json.loads((out / "manifest.json").read_text()) == [_entry().to_dict()]


def test_directory_sink_close_keeps_files(tmp_path):
    out = tmp_path / "image"
    sink = DirectorySink(str(out))
    _fill(sink)

    sink.close()
    sink.close()

    assert (out / "manifest.json").exists()
    assert (out / digest_of(CONFIG)).read_bytes() == CONFIG


@pytest.mark.parametrize("digest", ["../../etc/passwd", "sha256:short", ""])
def test_malformed_digests_never_become_paths(tmp_path, digest):
    with DirectorySink(str(tmp_path / "image")) as sink:
        with pytest.raises(ImagePullError) as excinfo:
            sink.write_layer(digest, b"x")
    assert excinfo.value.stage == "blob"

    with TarArchiveSink(str(tmp_path / "x.tar")) as sink:
        with pytest.raises(ImagePullError):
            sink.write_config(digest, b"x")


def test_open_sink_formats(tmp_path):
    with open_sink(str(tmp_path / "a.tar"), "tar") as sink:
        assert isinstance(sink, TarArchiveSink)
    with open_sink(str(tmp_path / "a"), "dir") as sink:
        assert isinstance(sink, DirectorySink)
    with pytest.raises(ValueError):
        open_sink(str(tmp_path / "a.zip"), "zip")
