import pytest

from virtbackup.config import CONFIG_ENV_VAR, Settings, load_settings
from virtbackup.errors import ConfigError


@pytest.fixture(autouse=True)
def no_env_config(monkeypatch):
    monkeypatch.delenv(CONFIG_ENV_VAR, raising=False)


def test_defaults_when_default_file_is_missing(monkeypatch, tmp_path):
    monkeypatch.setattr("virtbackup.config.DEFAULT_CONFIG_PATH", str(tmp_path / "absent.conf"))
    assert load_settings() == Settings()


def test_values_from_file(tmp_path):
    conf = tmp_path / "virt-backup.conf"
    conf.write_text(
        "[container]\nruntime = podman\ncompress = 3\n"
        "[backup]\ntimeout = 7200\n"
        "[rotation]\norder = Chronological\n"
        "[mail]\ntransport = smtp\nsmtp_host = mx.local\nsmtp_port = 587\nsmtp_starttls = yes\n"
        "[logging]\ndir =\nlevel = debug\n"
        "[libvirt]\nverify_domain = true\n"
    )
    settings = load_settings(str(conf))
    assert settings.runtime == "podman"
    assert settings.image == "ghcr.io/abbbi/virtnbdbackup:master"
    assert settings.compress == 3
    assert settings.timeout == 7200
    assert settings.rotation_order == "chronological"
    assert settings.mail_transport == "smtp"
    assert settings.smtp_host == "mx.local"
    assert settings.smtp_port == 587
    assert settings.smtp_starttls is True
    assert settings.log_dir == ""
    assert settings.log_level == "DEBUG"
    assert settings.verify_domain is True


def test_env_variable_points_to_file(monkeypatch, tmp_path):
    conf = tmp_path / "env.conf"
    conf.write_text("[container]\nruntime = podman\n")
    monkeypatch.setenv(CONFIG_ENV_VAR, str(conf))
    assert load_settings().runtime == "podman"


def test_explicit_file_must_exist(tmp_path):
    with pytest.raises(ConfigError, match="not found"):
        load_settings(str(tmp_path / "missing.conf"))


@pytest.mark.parametrize("content", [
    "[container]\ncompress = lots\n",
    "[container]\ncompress = -1\n",
    "[backup]\ntimeout = -5\n",
    "[rotation]\norder = random\n",
    "[mail]\ntransport = pigeon\n",
    "[logging]\nlevel = loud\n",
    "[libvirt]\nverify_domain = maybe\n",
    "not an ini file\n",
])
def test_invalid_files(tmp_path, content):
    conf = tmp_path / "bad.conf"
    conf.write_text(content)
    with pytest.raises(ConfigError):
        load_settings(str(conf))
