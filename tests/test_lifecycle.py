"""Tests for the package lifecycle API."""

from io import BytesIO
from pathlib import Path

import pytest

from yazpack import (
    CipherError,
    DestinationExistsError,
    FormatError,
    compress,
    compress_to,
    decrypt,
    decrypt_bytes,
    decrypt_file,
    encrypt,
    encrypt_bytes,
    encrypt_file,
    pack,
    pack_to,
    uncompress,
    uncompress_to,
    unpack,
    unpack_to,
)
from yazpack.container import lifecycle

from conftest import APP_FILES, FailingCipher, container_payloads, read_tree


class TestTempVariants:
    """pack/unpack/compress/uncompress into fresh temporary locations."""

    def test_pack_and_unpack(self, app_dir, config, cipher, temp_root):
        container = pack(app_dir, cipher, config=config)
        assert container.name == "application.yaz"
        assert container.parent.parent == temp_root
        assert container.parent.name.startswith("pack-")

        root = unpack(container, cipher, config=config)
        assert root.parent == temp_root
        assert root.name.startswith("unpack-")
        assert read_tree(root) == APP_FILES

    def test_compress_and_uncompress(self, app_dir, config):
        container = compress(app_dir, config=config)
        assert container.parent.name.startswith("compress-")
        assert container_payloads(container)["models/user.json"] == APP_FILES["models/user.json"]

        root = uncompress(container, config=config)
        assert root.name.startswith("uncompress-")
        assert read_tree(root) == APP_FILES

    def test_uncompress_leaves_payloads_encrypted(self, app_dir, config, cipher):
        container = pack(app_dir, cipher, config=config)
        root = uncompress(container, config=config)
        assert (root / "models" / "user.json").read_bytes() != APP_FILES["models/user.json"]
        assert (root / "plugins" / "user.so").read_bytes() == APP_FILES["plugins/user.so"]

    def test_custom_container_name(self, app_dir, config):
        config.container_name = "bundle.yaz"
        assert compress(app_dir, config=config).name == "bundle.yaz"

    def test_failed_pack_removes_temp_dir(self, app_dir, config, temp_root):
        with pytest.raises(CipherError):
            pack(app_dir, FailingCipher(), config=config)
        assert list(temp_root.iterdir()) == []

    def test_failed_unpack_removes_temp_dir(self, tmp_path, config, temp_root):
        bogus = tmp_path / "bogus.yaz"
        bogus.write_bytes(b"garbage")
        with pytest.raises(FormatError):
            unpack(bogus, None, config=config)
        assert list(temp_root.iterdir()) == []

    def test_global_config_used_by_default(self, app_dir, temp_root):
        from yazpack.runtime import RuntimeConfig, set_global_config

        set_global_config(RuntimeConfig(temp_dir=str(temp_root)))
        container = compress(app_dir)
        assert container.parent.parent == temp_root


class TestToVariants:
    """-to variants require an absent destination."""

    def test_pack_to(self, app_dir, tmp_path, cipher, config):
        output = tmp_path / "out.yaz"
        assert pack_to(app_dir, output, cipher, config=config) == output
        target = tmp_path / "target"
        assert unpack_to(output, target, cipher, config=config) == target
        assert read_tree(target) == APP_FILES

    def test_compress_to(self, app_dir, tmp_path, config):
        output = tmp_path / "out.yaz"
        compress_to(app_dir, output, config=config)
        target = tmp_path / "target"
        uncompress_to(output, target, config=config)
        assert read_tree(target) == APP_FILES

    @pytest.mark.parametrize("variant", ["pack_to", "compress_to"])
    def test_build_destination_exists(self, variant, app_dir, tmp_path, cipher, config):
        output = tmp_path / "out.yaz"
        output.write_bytes(b"keep me")

        with pytest.raises(DestinationExistsError) as exc:
            if variant == "pack_to":
                pack_to(app_dir, output, cipher, config=config)
            else:
                compress_to(app_dir, output, config=config)

        assert isinstance(exc.value, FileExistsError)
        assert exc.value.path == str(output)
        assert output.read_bytes() == b"keep me"

    @pytest.mark.parametrize("variant", ["unpack_to", "uncompress_to"])
    def test_extract_destination_exists(self, variant, app_dir, tmp_path, cipher, config):
        container = tmp_path / "app.yaz"
        compress_to(app_dir, container, config=config)
        output = tmp_path / "existing"
        output.mkdir()

        with pytest.raises(DestinationExistsError):
            if variant == "unpack_to":
                unpack_to(container, output, cipher, config=config)
            else:
                uncompress_to(container, output, config=config)

        assert list(output.iterdir()) == []

    def test_destination_created_between_check_and_write(self, app_dir, tmp_path, cipher, config, monkeypatch):
        output = tmp_path / "out.yaz"

        def appears_after_check(path):
            output.write_bytes(b"written by someone else")
            return Path(path)

        monkeypatch.setattr(lifecycle, "_require_absent", appears_after_check)
        with pytest.raises(DestinationExistsError):
            pack_to(app_dir, output, cipher, config=config)
        assert output.read_bytes() == b"written by someone else"

    def test_destination_dangling_symlink_counts_as_existing(self, app_dir, tmp_path, config):
        output = tmp_path / "link.yaz"
        output.symlink_to(tmp_path / "nowhere")
        with pytest.raises(DestinationExistsError):
            compress_to(app_dir, output, config=config)


class TestCipherHelpers:
    def test_streams(self, cipher):
        sealed = BytesIO()
        encrypt(cipher, BytesIO(b"stream data"), sealed)
        plain = BytesIO()
        decrypt(cipher, BytesIO(sealed.getvalue()), plain)
        assert plain.getvalue() == b"stream data"

    def test_bytes(self, cipher):
        sealed = encrypt_bytes(cipher, b"byte data")
        assert sealed != b"byte data"
        assert decrypt_bytes(cipher, sealed) == b"byte data"

    def test_bytes_wrong_key(self, cipher, other_cipher):
        with pytest.raises(CipherError):
            decrypt_bytes(other_cipher, encrypt_bytes(cipher, b"byte data"))

    def test_files(self, cipher, tmp_path):
        source = tmp_path / "config.yml"
        source.write_bytes(b"name: demo\n")
        sealed = tmp_path / "config.yml.enc"
        plain = tmp_path / "config.yml.dec"

        encrypt_file(cipher, source, sealed)
        decrypt_file(cipher, sealed, plain)

        assert sealed.read_bytes() != source.read_bytes()
        assert plain.read_bytes() == b"name: demo\n"

    def test_foreign_errors_are_wrapped(self):
        with pytest.raises(CipherError, match="encrypt boom") as exc:
            encrypt_bytes(FailingCipher(), b"x")
        assert isinstance(exc.value.__cause__, RuntimeError)

    def test_missing_file(self, cipher, tmp_path):
        with pytest.raises(FileNotFoundError):
            encrypt_file(cipher, tmp_path / "missing", tmp_path / "out")
