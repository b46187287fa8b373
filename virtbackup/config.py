import configparser
import os
from dataclasses import dataclass

from .errors import ConfigError

# --- CONSTANTS ---
DEFAULT_CONFIG_PATH = "/etc/virt-backup.conf"
CONFIG_ENV_VAR = "VIRT_BACKUP_CONFIG"

DEFAULT_IMAGE = 'ghcr.io/abbbi/virtnbdbackup:master'

ROTATION_ORDERS = ("lexical", "chronological")
MAIL_TRANSPORTS = ("command", "smtp")

DEFAULTS = {
    'container': {
        'runtime': 'docker',
        'image': DEFAULT_IMAGE,
        'compress': '16',
        'backup_level': 'auto',
    },
    'backup': {
        # seconds, 0 = wait forever
        'timeout': '0',
    },
    'rotation': {
        'order': 'lexical',
    },
    'mail': {
        'transport': 'command',
        'command': 'mail',
        'smtp_host': 'localhost',
        'smtp_port': '25',
        'smtp_starttls': 'no',
        'smtp_user': '',
        'smtp_password': '',
    },
    'logging': {
        'dir': '/var/log/virt-backup',
        'level': 'INFO',
    },
    'libvirt': {
        'verify_domain': 'no',
        'uri': 'qemu:///system',
    },
}


@dataclass(frozen=True)
class Settings:
    runtime: str = 'docker'
    image: str = DEFAULT_IMAGE
    compress: int = 16
    backup_level: str = 'auto'
    timeout: int = 0
    rotation_order: str = 'lexical'
    mail_transport: str = 'command'
    mail_command: str = 'mail'
    smtp_host: str = 'localhost'
    smtp_port: int = 25
    smtp_starttls: bool = False
    smtp_user: str = ''
    smtp_password: str = ''
    log_dir: str = '/var/log/virt-backup'
    log_level: str = 'INFO'
    verify_domain: bool = False
    libvirt_uri: str = 'qemu:///system'


def resolve_config_path(explicit=None):
    """Returns (path, required). An explicit or env path must exist, the default may not."""
    if explicit:
        return explicit, True
    env_path = os.environ.get(CONFIG_ENV_VAR)
    if env_path:
        return env_path, True
    return DEFAULT_CONFIG_PATH, False


def read_config(path=None) -> configparser.ConfigParser:
    config_path, required = resolve_config_path(path)

    parser = configparser.ConfigParser()
    parser.read_dict(DEFAULTS)

    if not os.path.exists(config_path):
        if required:
            raise ConfigError(f"Configuration file not found: {config_path}")
        return parser

    try:
        with open(config_path, encoding='utf-8') as f:
            parser.read_file(f, source=config_path)
    except (OSError, configparser.Error) as e:
        raise ConfigError(f"Could not read configuration file {config_path}: {e}") from e
    return parser


def load_settings(path=None) -> Settings:
    parser = read_config(path)

    try:
        settings = Settings(
            runtime=parser.get('container', 'runtime'),
            image=parser.get('container', 'image'),
            compress=parser.getint('container', 'compress'),
            backup_level=parser.get('container', 'backup_level'),
            timeout=parser.getint('backup', 'timeout'),
            rotation_order=parser.get('rotation', 'order').strip().lower(),
            mail_transport=parser.get('mail', 'transport').strip().lower(),
            mail_command=parser.get('mail', 'command'),
            smtp_host=parser.get('mail', 'smtp_host'),
            smtp_port=parser.getint('mail', 'smtp_port'),
            smtp_starttls=parser.getboolean('mail', 'smtp_starttls'),
            smtp_user=parser.get('mail', 'smtp_user'),
            smtp_password=parser.get('mail', 'smtp_password'),
            log_dir=parser.get('logging', 'dir'),
            log_level=parser.get('logging', 'level').strip().upper(),
            verify_domain=parser.getboolean('libvirt', 'verify_domain'),
            libvirt_uri=parser.get('libvirt', 'uri'),
        )
    except ValueError as e:
        raise ConfigError(f"Invalid value in configuration: {e}") from e

    if not settings.runtime or not settings.image:
        raise ConfigError("[container] runtime and image must not be empty.")
    if settings.compress < 0:
        raise ConfigError("[container] compress must be >= 0.")
    if settings.timeout < 0:
        raise ConfigError("[backup] timeout must be >= 0.")
    if settings.rotation_order not in ROTATION_ORDERS:
        raise ConfigError(f"[rotation] order must be one of: {', '.join(ROTATION_ORDERS)}")
    if settings.mail_transport not in MAIL_TRANSPORTS:
        raise ConfigError(f"[mail] transport must be one of: {', '.join(MAIL_TRANSPORTS)}")
    if settings.log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'):
        raise ConfigError(f"[logging] level is not a logging level: {settings.log_level}")
    return settings
