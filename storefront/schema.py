"""Collections and indexes in the document store.

MongoDB creates collections lazily, so the only "schema" we own is the set of
indexes. Unique indexes back the name-uniqueness checks done in the crud
modules: the up-front lookup gives a friendly error, the index catches races.
"""

from __future__ import annotations

from typing import Dict, List, Tuple

USERS = "users"
CATEGORIES = "categories"
PRODUCTS = "products"
TRANSACTIONS = "transactions"

# collection -> [(field, unique)]
INDEXES: Dict[str, List[Tuple[str, bool]]] = {
    USERS: [("name", True)],
    CATEGORIES: [("name", True)],
    PRODUCTS: [("name", True), ("category", False)],
    TRANSACTIONS: [("user", False)],
}
