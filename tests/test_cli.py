"""
Tests for the command line and the application controller.

Every site is a file:// directory, so whole commands run end to end.
"""

import io
import json
from unittest.mock import patch

import pytest

from update import UpdaterApp, main
from updater.core.files import checksum_bytes
from updater.errors import TransferFailed, UploadCancelled
from updater.index import Status
from updater.transport import HttpTransport

T1 = 20200101000000
T2 = 20210101000000


@pytest.fixture(autouse=True)
def no_proxy(monkeypatch):
    monkeypatch.delenv("http_proxy", raising=False)


@pytest.fixture
def core(make_site):
    site = make_site("core")
    site.add("jars/a.jar", b"alpha", T1, dependencies=["jars/b.jar"])
    site.add("jars/b.jar", b"bravo", T1)
    site.add("jars/c.jar", b"c1", T1)
    site.add("jars/c.jar", b"c2", T2)
    site.publish()
    return site


@pytest.fixture
def configured(core, install_root):
    """An installation whose local index names the core site."""
    assert main(["--root", str(install_root), "add-update-site", "core", core.url, "--upload-url", core.url]) == 0
    return install_root


def make_app(root, ui):
    out = io.StringIO()
    app = UpdaterApp(root, ui=ui, out=out)
    app.load()
    return app, out


class TestSiteCommands:

    def test_add_and_list_sites(self, configured, core, capsys):
        capsys.readouterr()
        assert main(["--root", str(configured), "list-update-sites"]) == 0
        assert capsys.readouterr().out == f"core\t{core.url}\t{core.url}\n"

    def test_add_replaces_existing_site(self, configured, core):
        main(["--root", str(configured), "add-update-site", "core", core.url])
        data = json.loads((configured / ".updater" / "db.json").read_text())
        assert data["update_sites"] == [{"name": "core", "url": core.url}]

    def test_first_site_writes_default_settings(self, configured):
        settings = json.loads((configured / ".updater" / "settings.json").read_text())
        assert settings["max_workers"] == 8
        assert settings["managed_dirs"]

    def test_existing_settings_kept(self, configured, core):
        path = configured / ".updater" / "settings.json"
        path.write_text(json.dumps({"max_workers": 2}))
        main(["--root", str(configured), "add-update-site", "contrib", core.url])
        assert json.loads(path.read_text()) == {"max_workers": 2}


class TestListCommands:

    def test_list(self, configured, write_file, capsys):
        write_file(configured, "jars/c.jar", b"c1")
        write_file(configured, "jars/mine.jar", b"mine")
        capsys.readouterr()

        assert main(["--root", str(configured), "list"]) == 0

        lines = capsys.readouterr().out.splitlines()
        assert lines == [
            f"jars/a.jar\t(NEW)\t{T1}",
            f"jars/b.jar\t(NEW)\t{T1}",
            f"jars/c.jar\t(UPDATEABLE)\t{T2}",
            "jars/mine.jar\t(LOCAL_ONLY)\t0",
        ]

    def test_list_filters(self, configured, write_file, fake_ui):
        write_file(configured, "jars/c.jar", b"c1")
        write_file(configured, "jars/b.jar", b"bravo")

        app, out = make_app(configured, fake_ui)
        app.list_updateable([])
        app.list_uptodate([])
        app.list_not_uptodate(["jars/a.jar", "jars/b.jar"])

        assert out.getvalue().splitlines() == [
            f"jars/c.jar\t(UPDATEABLE)\t{T2}",
            f"jars/b.jar\t(INSTALLED)\t{T1}",
            f"jars/a.jar\t(NEW)\t{T1}",
        ]

    def test_list_current(self, configured, fake_ui):
        app, out = make_app(configured, fake_ui)
        app.list_current(["jars/c.jar"])
        assert out.getvalue() == f"jars/c.jar-{T2}\n"


class TestUpdateCommand:

    def test_update_pulls_in_dependencies(self, configured, fake_ui):
        app, _ = make_app(configured, fake_ui)

        report = app.update(["jars/a.jar"])

        assert sorted(report.installed) == ["jars/a.jar", "jars/b.jar"]
        assert (configured / "jars" / "b.jar").read_bytes() == b"bravo"
        assert not (configured / "jars" / "c.jar").exists()

    def test_update_everything_from_command_line(self, configured):
        assert main(["--root", str(configured), "update"]) == 0
        assert (configured / "jars" / "c.jar").read_bytes() == b"c2"

        app, _ = make_app(configured, None)
        assert {r.status for r in app.collection} == {Status.INSTALLED}

    def test_modified_file_survives_plain_update(self, configured, write_file, fake_ui):
        write_file(configured, "jars/c.jar", b"my own edit")
        app, _ = make_app(configured, fake_ui)

        app.update([])

        assert (configured / "jars" / "c.jar").read_bytes() == b"my own edit"
        assert "Skipping locally-modified jars/c.jar" in fake_ui.warnings

    def test_update_force_replaces_modified_file(self, configured, write_file):
        write_file(configured, "jars/c.jar", b"my own edit")
        assert main(["--root", str(configured), "update-force", "jars/c.jar"]) == 0
        assert (configured / "jars" / "c.jar").read_bytes() == b"c2"


class TestUploadCommand:

    def test_upload_new_file(self, configured, core, write_file, make_ui):
        write_file(configured, "jars/mine.jar", b"mine")
        ui = make_ui(choice=0)
        app, _ = make_app(configured, ui)

        report = app.upload(["jars/mine.jar"], assume_yes=True)

        assert report.uploaded == ["jars/mine.jar"]
        assert ui.questions == ["Choose upload site for file 'jars/mine.jar'"]
        published = {f["filename"]: f for f in core.document()["files"]}
        assert published["jars/mine.jar"]["versions"][0]["checksum"] == checksum_bytes(b"mine")

    def test_declined_confirmation_uploads_nothing(self, configured, core, write_file, make_ui):
        write_file(configured, "jars/c.jar", b"changed")
        ui = make_ui(answer_yes=False)
        app, _ = make_app(configured, ui)

        with pytest.raises(UploadCancelled):
            app.upload(["jars/c.jar"])

        assert len(core.document()["files"]) == 3
        assert sorted(p.name for p in (core.directory / "jars").iterdir()) == [
            f"a.jar-{T1}", f"b.jar-{T1}", f"c.jar-{T1}", f"c.jar-{T2}",
        ]

    def test_no_uploadable_site(self, make_site, install_root, write_file, make_ui):
        site = make_site("readonly")
        site.publish()
        main(["--root", str(install_root), "add-update-site", "readonly", site.url])
        write_file(install_root, "jars/mine.jar", b"mine")
        ui = make_ui()
        app, _ = make_app(install_root, ui)

        with pytest.raises(UploadCancelled):
            app.upload(["jars/mine.jar"], assume_yes=True)
        assert "No uploadable sites found" in ui.warnings

    def test_upload_without_files_fails(self, configured, capsys):
        assert main(["--root", str(configured), "upload", "--yes"]) == 1
        assert "Which files do you mean to upload?" in capsys.readouterr().err

    def test_remove_withdraws_file(self, configured, core, write_file):
        write_file(configured, "jars/b.jar", b"bravo")
        assert main(["--root", str(configured), "remove", "--yes", "jars/b.jar"]) == 0
        entry = next(f for f in core.document()["files"] if f["filename"] == "jars/b.jar")
        assert entry["current"] is False


class TestMain:

    def test_no_command_prints_usage(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().err

    def test_malformed_local_index(self, install_root, capsys):
        index = install_root / ".updater" / "db.json"
        index.parent.mkdir()
        index.write_text("{broken")

        assert main(["--root", str(install_root), "list"]) == 1
        assert "Could not load index" in capsys.readouterr().err
        assert index.read_text() == "{broken"

    def test_unknown_upload_file(self, configured, capsys):
        assert main(["--root", str(configured), "upload", "--yes", "jars/nope.jar"]) == 1
        assert "No file 'jars/nope.jar' found!" in capsys.readouterr().err

    def test_invalid_proxy(self, monkeypatch, install_root, capsys):
        monkeypatch.setenv("http_proxy", "http://proxy:notaport")
        assert main(["--root", str(install_root), "list"]) == 1
        assert "Invalid http_proxy" in capsys.readouterr().err

    def test_failed_index_publish_exits_nonzero(self, configured, write_file, capsys):
        write_file(configured, "jars/b.jar", b"edited")
        real_push = HttpTransport.push

        def refuse_index(self, session, remote_name, data, metadata=None):
            if remote_name == "db.json":
                raise TransferFailed(remote_name, "read-only site")
            return real_push(self, session, remote_name, data, metadata)

        with patch.object(HttpTransport, "push", refuse_index):
            assert main(["--root", str(configured), "upload", "--yes", "jars/b.jar"]) == 1

        assert "Could not publish index of core: read-only site" in capsys.readouterr().err
