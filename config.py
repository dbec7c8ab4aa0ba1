import copy
import json
import os

DEFAULT_CONFIG = {
    'log': {'path': 'games_mp.log', 'start_at_end': True, 'poll_interval': 0.15, 'reopen_retry': 0.2, 'queue_size': 256},
    'rcon': {'host': '127.0.0.1', 'port': 28960, 'password': '', 'timeout': 1.5},
    'players': {'ttl': 2.0},
    'logging': {'level': 'INFO'},
}


def _deep_merge(d, default):
    for k, v in default.items():
        if k not in d:
            d[k] = copy.deepcopy(v)
        elif isinstance(v, dict) and isinstance(d[k], dict):
            _deep_merge(d[k], v)
    return d


def load_config(path='config.json'):
    if not os.path.isfile(path):
        save_config(DEFAULT_CONFIG, path)
        return copy.deepcopy(DEFAULT_CONFIG)
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return _deep_merge(data, DEFAULT_CONFIG)


def save_config(conf, path='config.json'):
    tmp = path + '.tmp'
    with open(tmp, 'w', encoding='utf-8') as f:
        json.dump(conf, f, indent=2, ensure_ascii=False)
    os.replace(tmp, path)
