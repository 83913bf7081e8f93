"""
app/db/indexes.py

Purpose: Database index management

- Creates unique and performance indexes
- Unique stripeInvoiceId index backs the idempotent invoice upsert
"""

from app.db.mongo import (
    get_users_collection,
    get_assistants_collection,
    get_phone_numbers_collection,
    get_invoices_collection,
    get_payment_methods_collection,
    get_calls_collection,
    get_clients_collection,
)
from app.core.logging import get_logger

logger = get_logger(__name__)


async def create_indexes():
    """
    Creates all necessary database indexes.
    This function is idempotent - safe to run multiple times.
    """
    try:
        users = get_users_collection()
        assistants = get_assistants_collection()
        phone_numbers = get_phone_numbers_collection()
        invoices = get_invoices_collection()
        payment_methods = get_payment_methods_collection()
        calls = get_calls_collection()
        clients = get_clients_collection()

        logger.info("Creating database indexes...")

        # ==============================================
        # USERS
        # ==============================================
        await users.create_index("email", name="email_idx")
        await users.create_index("customerId", sparse=True, name="customer_id_idx")
        logger.debug("Created indexes on users.email, users.customerId")

        # ==============================================
        # ASSISTANTS
        # ==============================================
        await assistants.create_index("vapiAssistantId", unique=True, name="vapi_assistant_id_unique")
        await assistants.create_index(
            [("userId", 1), ("createdAt", -1)],
            name="user_assistants_idx"
        )
        await assistants.create_index("status", name="assistant_status_idx")
        logger.debug("Created indexes on assistants")

        # ==============================================
        # PHONE NUMBERS
        # ==============================================
        await phone_numbers.create_index("vapiPhoneNumberId", unique=True, name="vapi_phone_number_id_unique")
        await phone_numbers.create_index("userId", name="phone_user_idx")
        logger.debug("Created indexes on phone_numbers")

        # ==============================================
        # INVOICES
        # ==============================================
        await invoices.create_index("stripeInvoiceId", unique=True, name="stripe_invoice_id_unique")
        await invoices.create_index(
            [("userId", 1), ("invoiceDate", -1)],
            name="user_invoices_idx"
        )
        logger.debug("Created indexes on invoices")

        # ==============================================
        # PAYMENT METHODS
        # ==============================================
        await payment_methods.create_index(
            "stripePaymentMethodId", unique=True, name="stripe_payment_method_id_unique"
        )
        await payment_methods.create_index(
            [("userId", 1), ("isDefault", 1)],
            name="user_default_payment_method_idx"
        )
        logger.debug("Created indexes on payment_methods")

        # ==============================================
        # CALLS
        # ==============================================
        await calls.create_index([("userId", 1), ("createdAt", -1)], name="user_calls_idx")
        await calls.create_index([("assistantId", 1), ("createdAt", -1)], name="assistant_calls_idx")
        logger.debug("Created indexes on calls")

        # ==============================================
        # CLIENTS (legacy)
        # ==============================================
        await clients.create_index("userId", name="client_user_idx")
        await clients.create_index("email", name="client_email_idx")
        logger.debug("Created indexes on clients")

        logger.info("✅ All database indexes created successfully")

    except Exception as e:
        logger.error(f"Failed to create indexes: {str(e)}", exc_info=True)
        raise


if __name__ == "__main__":
    """
    Run this script directly to create indexes manually.
    """
    import asyncio
    from app.db.mongo import connect_to_mongo, close_mongo_connection

    async def main():
        await connect_to_mongo()
        await create_indexes()
        await close_mongo_connection()

    asyncio.run(main())
