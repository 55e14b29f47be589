"""Loading and validating the JSON configuration file."""

import json
from typing import Dict

from flow_version_manager.errors import ConfigError

DEFAULT_CALLBACK_PORT = 8080

DEFAULTS = {
    'client_id': '',
    'client_secret': '',
    'access_token': '',
    'callback_port': DEFAULT_CALLBACK_PORT,
    'api_version': 'v60.0',
    'page_size': 50,
    'batch_size': 25,
    'skip_production_check': False,
    'access_permission': 'PermissionsModifyAllData',
    'log_dir': '.',
}


def normalize_instance_url(instance: str) -> str:
    """Turn 'mycompany' or 'mycompany.my.salesforce.com' into a full https URL"""
    instance = instance.strip().rstrip('/')
    if not instance.startswith('http'):
        instance = f"https://{instance}"
    if not instance.endswith('.salesforce.com'):
        instance = f"{instance}.my.salesforce.com"
    return instance


def validate_port(port) -> int:
    try:
        port = int(port)
    except (TypeError, ValueError):
        raise ConfigError(f"Invalid callback port: {port}")
    if port < 1024 or port > 65535:
        raise ConfigError(f"Callback port should be between 1024-65535, got {port}")
    return port


def validate_config(config: Dict) -> Dict:
    if not isinstance(config, dict):
        raise ConfigError("Configuration must be a JSON object")
    if not config.get('instance'):
        raise ConfigError("Missing required field: instance")
    if not config.get('client_id') and not config.get('access_token'):
        raise ConfigError("Either client_id or access_token is required")

    for key, value in DEFAULTS.items():
        config.setdefault(key, value)

    config['instance'] = normalize_instance_url(config['instance'])
    config['callback_port'] = validate_port(config['callback_port'])
    for field in ('page_size', 'batch_size'):
        if not isinstance(config[field], int) or config[field] < 1:
            raise ConfigError(f"{field} must be a positive integer")
    if not config['api_version'].startswith('v'):
        config['api_version'] = f"v{config['api_version']}"
    return config


def load_config_file(config_file: str) -> Dict:
    """Load configuration from JSON file"""
    try:
        with open(config_file, 'r') as f:
            config = json.load(f)
    except FileNotFoundError:
        raise ConfigError(f"Configuration file not found: {config_file}")
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in configuration file: {e}")
    return validate_config(config)
