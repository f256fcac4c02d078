from __future__ import annotations

from erp.core.modules.sdk import manifest_for, routes_from

MANIFEST = manifest_for(__file__)
ROUTES = routes_from(MANIFEST)

COMPONENTS = {
    "InvoiceList": {"kind": "list", "model": "finance.invoice"},
    "PaymentList": {"kind": "list", "model": "finance.payment"},
}
