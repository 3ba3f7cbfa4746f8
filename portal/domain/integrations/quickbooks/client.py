"""
QuickBooks Online API client
OAuth 2.0 token exchange and refresh, company info, customers, invoices and payments
"""

import base64
import logging
from datetime import datetime, timedelta
from typing import Optional
from urllib.parse import urlencode

import httpx
from sqlalchemy.orm import Session

from ....config import (
    QUICKBOOKS_CLIENT_ID,
    QUICKBOOKS_CLIENT_SECRET,
    QUICKBOOKS_ENVIRONMENT,
    QUICKBOOKS_REDIRECT_URI,
)
from ....models_invoice import Invoice, InvoicePayment
from ....models_quickbooks import QuickBooksIntegration, QuickBooksSyncLog
from ....security_utils import decrypt_token, encrypt_token

logger = logging.getLogger(__name__)

QUICKBOOKS_AUTH_URL = "https://appcenter.intuit.com/connect/oauth2"
QUICKBOOKS_TOKEN_URL = "https://oauth.platform.intuit.com/oauth2/v1/tokens/bearer"
QUICKBOOKS_REVOKE_URL = "https://developer.api.intuit.com/v2/oauth2/tokens/revoke"
if QUICKBOOKS_ENVIRONMENT == "production":
    QUICKBOOKS_API_BASE_URL = "https://quickbooks.api.intuit.com/v3"
else:
    QUICKBOOKS_API_BASE_URL = "https://sandbox-quickbooks.api.intuit.com/v3"

QUICKBOOKS_SCOPE = "com.intuit.quickbooks.accounting"
REFRESH_MARGIN = timedelta(minutes=5)
REQUEST_TIMEOUT_SECONDS = 30


class QuickBooksError(Exception):
    """Raised when QuickBooks rejects a request or is unreachable"""

    pass


def is_configured() -> bool:
    return bool(QUICKBOOKS_CLIENT_ID and QUICKBOOKS_CLIENT_SECRET)


def get_basic_auth_header() -> str:
    """Generate Basic Auth header for QuickBooks"""
    credentials = f"{QUICKBOOKS_CLIENT_ID}:{QUICKBOOKS_CLIENT_SECRET}"
    return base64.b64encode(credentials.encode()).decode()


def build_authorize_url(state: str) -> str:
    params = {
        "client_id": QUICKBOOKS_CLIENT_ID,
        "response_type": "code",
        "scope": QUICKBOOKS_SCOPE,
        "redirect_uri": QUICKBOOKS_REDIRECT_URI,
        "state": state,
    }
    return f"{QUICKBOOKS_AUTH_URL}?{urlencode(params)}"


async def _token_request(data: dict) -> dict:
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.post(
                QUICKBOOKS_TOKEN_URL,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/x-www-form-urlencoded",
                    "Authorization": f"Basic {get_basic_auth_header()}",
                },
                data=data,
            )
    except httpx.HTTPError as e:
        raise QuickBooksError(f"Token request failed: {e}") from e

    if response.status_code != 200:
        logger.error(f"❌ QuickBooks token request failed: {response.text}")
        raise QuickBooksError(f"Token request rejected ({response.status_code})")

    token_data = response.json()
    if not token_data.get("access_token") or not token_data.get("refresh_token"):
        raise QuickBooksError("Invalid token response from QuickBooks")
    return token_data


async def exchange_code(code: str) -> dict:
    return await _token_request(
        {"grant_type": "authorization_code", "code": code, "redirect_uri": QUICKBOOKS_REDIRECT_URI}
    )


def store_tokens(integration: QuickBooksIntegration, token_data: dict) -> None:
    integration.access_token = encrypt_token(token_data["access_token"])
    integration.refresh_token = encrypt_token(token_data["refresh_token"])
    integration.token_expires_at = datetime.utcnow() + timedelta(seconds=token_data.get("expires_in", 3600))


async def get_valid_access_token(db: Session, integration: QuickBooksIntegration) -> str:
    """Decrypted access token, refreshed first when it expires within five minutes"""
    if integration.token_expires_at > datetime.utcnow() + REFRESH_MARGIN:
        return decrypt_token(integration.access_token)

    logger.info(f"🔄 Refreshing QuickBooks token for organization {integration.organization_id}")
    token_data = await _token_request(
        {"grant_type": "refresh_token", "refresh_token": decrypt_token(integration.refresh_token)}
    )
    store_tokens(integration, token_data)
    db.commit()
    return token_data["access_token"]


async def api_request(
    method: str, access_token: str, realm_id: str, path: str, json: Optional[dict] = None, params: Optional[dict] = None
) -> dict:
    url = f"{QUICKBOOKS_API_BASE_URL}/company/{realm_id}/{path}"
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            response = await client.request(
                method,
                url,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "Authorization": f"Bearer {access_token}",
                },
                json=json,
                params=params,
            )
    except httpx.HTTPError as e:
        raise QuickBooksError(f"QuickBooks request failed: {e}") from e

    if response.status_code not in (200, 201):
        logger.error(f"❌ QuickBooks {method} {path} failed: {response.text}")
        raise QuickBooksError(response.text[:1000] or f"HTTP {response.status_code}")
    return response.json()


async def fetch_company_info(access_token: str, realm_id: str) -> dict:
    data = await api_request("GET", access_token, realm_id, f"companyinfo/{realm_id}")
    return data.get("CompanyInfo", {})


async def revoke_token(token: str) -> None:
    try:
        async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT_SECONDS) as client:
            await client.post(
                QUICKBOOKS_REVOKE_URL,
                headers={
                    "Accept": "application/json",
                    "Content-Type": "application/json",
                    "Authorization": f"Basic {get_basic_auth_header()}",
                },
                json={"token": token},
            )
    except httpx.HTTPError as e:
        logger.warning(f"⚠️ QuickBooks token revoke failed: {e}")


def _escape_query_value(value: str) -> str:
    return value.replace("\\", "\\\\").replace("'", "\\'")


async def find_or_create_customer(access_token: str, realm_id: str, display_name: str) -> str:
    query = f"select Id from Customer where DisplayName = '{_escape_query_value(display_name)}'"
    data = await api_request("GET", access_token, realm_id, "query", params={"query": query})
    customers = data.get("QueryResponse", {}).get("Customer", [])
    if customers:
        return customers[0]["Id"]

    created = await api_request("POST", access_token, realm_id, "customer", json={"DisplayName": display_name})
    logger.info(f"✅ QuickBooks customer created: {display_name}")
    return created["Customer"]["Id"]


def build_invoice_payload(invoice: Invoice, customer_id: str) -> dict:
    lines = [
        {
            "Amount": item.amount / 100,
            "DetailType": "SalesItemLineDetail",
            "Description": item.description,
            "SalesItemLineDetail": {"Qty": item.quantity, "UnitPrice": item.unit_price / 100},
        }
        for item in invoice.line_items
    ]
    payload = {
        "CustomerRef": {"value": customer_id},
        "DocNumber": invoice.invoice_number[:21],
        "TxnDate": invoice.issue_date.strftime("%Y-%m-%d"),
        "Line": lines,
    }
    if invoice.due_date:
        payload["DueDate"] = invoice.due_date.strftime("%Y-%m-%d")
    if invoice.discount_amount:
        payload["Line"].append(
            {
                "Amount": invoice.discount_amount / 100,
                "DetailType": "DiscountLineDetail",
                "DiscountLineDetail": {"PercentBased": False},
            }
        )
    return payload


async def sync_invoice(db: Session, integration: QuickBooksIntegration, invoice: Invoice) -> QuickBooksSyncLog:
    """Push an invoice to QuickBooks and record the attempt; errors are logged, not raised"""
    payload = None
    try:
        access_token = await get_valid_access_token(db, integration)
        customer_id = await find_or_create_customer(access_token, integration.realm_id, invoice.organization.name)
        payload = build_invoice_payload(invoice, customer_id)
        created = await api_request("POST", access_token, integration.realm_id, "invoice", json=payload)
        quickbooks_id = created.get("Invoice", {}).get("Id")

        invoice.quickbooks_id = quickbooks_id
        integration.last_invoice_sync = datetime.utcnow()
        log = QuickBooksSyncLog(
            integration_id=integration.id,
            sync_type="invoice",
            entity_type="Invoice",
            entity_id=invoice.id,
            quickbooks_id=quickbooks_id,
            status="success",
            sync_data={"invoice_data": payload},
        )
        logger.info(f"✅ Invoice {invoice.invoice_number} synced to QuickBooks ({quickbooks_id})")
    except (QuickBooksError, ValueError) as e:
        log = QuickBooksSyncLog(
            integration_id=integration.id,
            sync_type="invoice",
            entity_type="Invoice",
            entity_id=invoice.id,
            status="error",
            error_message=str(e)[:1000],
            sync_data={"invoice_data": payload} if payload else None,
        )
        logger.error(f"❌ QuickBooks sync failed for invoice {invoice.invoice_number}: {e}")

    db.add(log)
    db.commit()
    db.refresh(log)
    return log


def build_payment_payload(payment: InvoicePayment, customer_id: str, quickbooks_invoice_id: str) -> dict:
    """Payment linked to the already-pushed QuickBooks invoice"""
    amount = payment.amount / 100
    payload = {
        "TotalAmt": amount,
        "CustomerRef": {"value": customer_id},
        "TxnDate": payment.payment_date.strftime("%Y-%m-%d"),
        "Line": [{"Amount": amount, "LinkedTxn": [{"TxnId": quickbooks_invoice_id, "TxnType": "Invoice"}]}],
    }
    if payment.reference:
        payload["PaymentRefNum"] = payment.reference[:21]
    if payment.notes:
        payload["PrivateNote"] = payment.notes[:4000]
    return payload


async def sync_payment(
    db: Session, integration: QuickBooksIntegration, payment: InvoicePayment
) -> QuickBooksSyncLog:
    """Push a recorded payment against its synced invoice; errors are logged, not raised"""
    invoice = payment.invoice
    payload = None
    try:
        access_token = await get_valid_access_token(db, integration)
        customer_id = await find_or_create_customer(access_token, integration.realm_id, invoice.organization.name)
        payload = build_payment_payload(payment, customer_id, invoice.quickbooks_id)
        created = await api_request("POST", access_token, integration.realm_id, "payment", json=payload)
        quickbooks_id = created.get("Payment", {}).get("Id")

        payment.quickbooks_id = quickbooks_id
        payment.quickbooks_synced_at = datetime.utcnow()
        integration.last_payment_sync = payment.quickbooks_synced_at
        log = QuickBooksSyncLog(
            integration_id=integration.id,
            sync_type="payment",
            entity_type="InvoicePayment",
            entity_id=payment.id,
            quickbooks_id=quickbooks_id,
            status="success",
            sync_data={"payment_data": payload},
        )
        logger.info(f"✅ Payment {payment.id} on {invoice.invoice_number} synced to QuickBooks ({quickbooks_id})")
    except (QuickBooksError, ValueError) as e:
        log = QuickBooksSyncLog(
            integration_id=integration.id,
            sync_type="payment",
            entity_type="InvoicePayment",
            entity_id=payment.id,
            status="error",
            error_message=str(e)[:1000],
            sync_data={"payment_data": payload} if payload else None,
        )
        logger.error(f"❌ QuickBooks sync failed for payment {payment.id}: {e}")

    db.add(log)
    db.commit()
    db.refresh(log)
    return log
