from ._config_utils import load_simple_config, save_simple_config, load_user_config, tuneables_path
