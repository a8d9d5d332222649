from __future__ import annotations

import threading

from fastapi import Request

from vanish.core.config import Settings, get_settings
from vanish.expiry.factory import build_expiry_index
from vanish.services.lifecycle import BlobLifecycle, LifecyclePolicy
from vanish.services.payments import build_payment_gate
from vanish.storage.factory import build_blob_store

_BUILD_LOCK = threading.Lock()


def build_lifecycle(settings: Settings) -> BlobLifecycle:
    return BlobLifecycle(
        blob_store=build_blob_store(),
        expiry_index=build_expiry_index(),
        payment_gate=build_payment_gate(settings.PAYMENT_PROOF_SECRET),
        policy=LifecyclePolicy.from_settings(settings),
    )


def get_lifecycle(request: Request) -> BlobLifecycle:
    # One set of store clients per app, built on first use so importing the
    # app never touches storage.
    state = request.app.state
    lifecycle = getattr(state, "lifecycle", None)
    if lifecycle is None:
        with _BUILD_LOCK:
            lifecycle = getattr(state, "lifecycle", None)
            if lifecycle is None:
                lifecycle = build_lifecycle(get_settings())
                state.lifecycle = lifecycle
    return lifecycle
