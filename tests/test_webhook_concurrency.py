"""Deliveries of the same tx_ref racing through the pipeline."""

import asyncio
import json

import pytest

from conftest import WEBHOOK_HASH, webhook_body
from app.models.flutterwave_webhook_models import WebhookOutcome
from app.services.flutterwave_webhook_services import FlutterwaveWebhookService
from app.services.subscription_billing_services import SubscriptionBillingService


def hold_ledger_reads_until(count: int):
    """Block every ledger read until `count` of them are in flight, so all racers see an empty ledger"""
    arrived = 0
    everyone_in = asyncio.Event()

    async def gate():
        nonlocal arrived
        arrived += 1
        if arrived >= count:
            everyone_in.set()
        await everyone_in.wait()

    return gate


def commit_calls(supabase_admin):
    return [call for call in supabase_admin.rpc_calls if call[0] == "handle_successful_payment"]


@pytest.mark.asyncio
async def test_simultaneous_deliveries_commit_exactly_once(settings, supabase_admin, flutterwave):
    supabase_admin.select_gate = hold_ledger_reads_until(2)
    billing_service = SubscriptionBillingService(supabase_admin)
    raw_body = json.dumps(webhook_body()).encode()

    first = FlutterwaveWebhookService(settings, flutterwave.client(settings), billing_service)
    second = FlutterwaveWebhookService(settings, flutterwave.client(settings), billing_service)

    outcomes = await asyncio.gather(first.process(WEBHOOK_HASH, raw_body), second.process(WEBHOOK_HASH, raw_body))

    # both passed the ledger check and reached the commit; the unique constraint turned the loser into a no-op
    assert len(commit_calls(supabase_admin)) == 2
    assert sorted(outcome.value for outcome in outcomes) == ["Already processed", "OK"]
    assert len(supabase_admin.tables["payment_transactions"]) == 1
    assert len(supabase_admin.tables["subscriptions"]) == 1


@pytest.mark.asyncio
async def test_many_concurrent_deliveries_never_double_apply(settings, supabase_admin, flutterwave):
    supabase_admin.select_gate = hold_ledger_reads_until(5)
    billing_service = SubscriptionBillingService(supabase_admin)
    raw_body = json.dumps(webhook_body()).encode()

    services = [FlutterwaveWebhookService(settings, flutterwave.client(settings), billing_service) for _ in range(5)]
    outcomes = await asyncio.gather(*(service.process(WEBHOOK_HASH, raw_body) for service in services))

    assert len(commit_calls(supabase_admin)) == 5
    assert outcomes.count(WebhookOutcome.PROCESSED) == 1
    assert outcomes.count(WebhookOutcome.ALREADY_PROCESSED) == 4
    assert len(supabase_admin.tables["payment_transactions"]) == 1
    assert len(supabase_admin.tables["subscriptions"]) == 1


@pytest.mark.asyncio
async def test_late_delivery_takes_the_ledger_path(settings, supabase_admin, flutterwave):
    billing_service = SubscriptionBillingService(supabase_admin)
    raw_body = json.dumps(webhook_body()).encode()
    service = FlutterwaveWebhookService(settings, flutterwave.client(settings), billing_service)

    assert await service.process(WEBHOOK_HASH, raw_body) is WebhookOutcome.PROCESSED
    assert await service.process(WEBHOOK_HASH, raw_body) is WebhookOutcome.ALREADY_PROCESSED

    # the second delivery stopped at the ledger lookup
    assert len(commit_calls(supabase_admin)) == 1
