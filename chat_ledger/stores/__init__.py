# chat_ledger/stores/__init__.py
from importlib import import_module

from chat_ledger.stores.base import TABLES


def get_store(name, config, table):
    path = config['store_modules'][name]
    module_name, cls_name = path.rsplit('.', 1)
    mod = import_module(module_name)
    return getattr(mod, cls_name)(config, table, TABLES[table])
