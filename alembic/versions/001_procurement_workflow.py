"""Procurement workflow schema

Revision ID: 001
Revises:
Create Date: 2026-10-18

Creates: companies, users, document_sequences, rfqs, rfq_items, rfq_invitations,
         rfq_status_history, bids, bid_items, negotiations, negotiation_messages,
         purchase_orders, purchase_order_items, purchase_order_status_history,
         purchase_order_modifications, notifications, event_outbox, processed_events
Enums: companytype, userrole, rfqstatus, invitationstatus, bidstatus,
       negotiationstatus, messagetype, offerstatus, purchaseorderstatus,
       modificationstatus, eventstatus
"""

from typing import Sequence, Union

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

# Enum labels are the Python member names (SQLAlchemy persists names)
ENUMS = {
    "companytype": ("BUYER", "SUPPLIER", "BOTH"),
    "userrole": ("BUYER", "SUPPLIER", "ADMIN"),
    "rfqstatus": (
        "DRAFT", "PUBLISHED", "BIDDING_OPEN", "BIDDING_CLOSED",
        "UNDER_EVALUATION", "AWARDED", "COMPLETED", "CANCELLED",
    ),
    "invitationstatus": ("INVITED", "VIEWED", "SUBMITTED", "DECLINED"),
    "bidstatus": ("DRAFT", "SUBMITTED", "UNDER_REVIEW", "AWARDED", "REJECTED", "WITHDRAWN"),
    "negotiationstatus": ("ACTIVE", "CLOSED", "CANCELLED"),
    "messagetype": ("TEXT", "COUNTER_OFFER", "ACCEPTANCE", "REJECTION"),
    "offerstatus": ("ACCEPTED", "REJECTED", "CANCELLED"),
    "purchaseorderstatus": (
        "DRAFT", "PENDING_APPROVAL", "APPROVED", "SENT_TO_SUPPLIER", "ACKNOWLEDGED",
        "IN_PROGRESS", "DELIVERED", "COMPLETED", "CANCELLED", "REJECTED",
    ),
    "modificationstatus": ("PENDING", "APPROVED", "REJECTED"),
    "eventstatus": ("PENDING", "PROCESSING", "COMPLETED", "FAILED"),
}

TABLES = (
    "processed_events",
    "event_outbox",
    "notifications",
    "purchase_order_modifications",
    "purchase_order_status_history",
    "purchase_order_items",
    "purchase_orders",
    "negotiation_messages",
    "negotiations",
    "bid_items",
    "bids",
    "rfq_status_history",
    "rfq_invitations",
    "rfq_items",
    "rfqs",
    "document_sequences",
    "users",
    "companies",
)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS pgcrypto;")

    # ── 1. Enum types ─────────────────────────────────────────────────────
    for name, labels in ENUMS.items():
        values = ", ".join(f"'{label}'" for label in labels)
        op.execute(f"CREATE TYPE {name} AS ENUM ({values});")

    # ── 2. Parties ────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE companies (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            name VARCHAR(255) NOT NULL,
            type companytype NOT NULL DEFAULT 'BUYER',
            email VARCHAR(255),
            address VARCHAR(500),
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_companies_type ON companies (type);")

    op.execute("""
        CREATE TABLE users (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            email VARCHAR(255) NOT NULL,
            name VARCHAR(255) NOT NULL,
            company_id UUID REFERENCES companies(id) ON DELETE SET NULL,
            role userrole NOT NULL DEFAULT 'BUYER',
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_users_email UNIQUE (email)
        );
    """)
    op.execute("CREATE INDEX ix_users_company_id ON users (company_id);")

    # ── 3. Reference number counters ──────────────────────────────────────
    op.execute("""
        CREATE TABLE document_sequences (
            prefix VARCHAR(10) NOT NULL,
            year INTEGER NOT NULL,
            last_value INTEGER NOT NULL DEFAULT 0,
            CONSTRAINT pk_document_sequences PRIMARY KEY (prefix, year)
        );
    """)

    # ── 4. RFQs ───────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE rfqs (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            reference_number VARCHAR(20) NOT NULL,
            company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            created_by UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            title VARCHAR(255) NOT NULL,
            description TEXT,
            status rfqstatus NOT NULL DEFAULT 'DRAFT',
            currency VARCHAR(3) NOT NULL DEFAULT 'USD',
            budget_min NUMERIC(15,2),
            budget_max NUMERIC(15,2),
            delivery_date TIMESTAMPTZ,
            bid_deadline TIMESTAMPTZ,
            delivery_location VARCHAR(255),
            terms_conditions TEXT,
            awarded_supplier_id UUID REFERENCES companies(id) ON DELETE SET NULL,
            awarded_at TIMESTAMPTZ,
            completed_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            cancellation_reason TEXT,
            metadata_extra JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfqs_reference_number UNIQUE (reference_number),
            CONSTRAINT ck_rfqs_deadline_before_delivery CHECK (
                bid_deadline IS NULL OR delivery_date IS NULL OR bid_deadline < delivery_date
            )
        );
    """)
    op.execute("CREATE INDEX ix_rfqs_company_id ON rfqs (company_id);")
    op.execute("CREATE INDEX ix_rfqs_status ON rfqs (status);")
    op.execute("CREATE INDEX ix_rfqs_created_by ON rfqs (created_by);")
    op.execute(
        "CREATE INDEX ix_rfqs_bid_deadline ON rfqs (bid_deadline) WHERE status = 'BIDDING_OPEN';"
    )

    op.execute("""
        CREATE TABLE rfq_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            item_name VARCHAR(255) NOT NULL,
            item_description TEXT,
            quantity NUMERIC(12,3) NOT NULL,
            unit_of_measure VARCHAR(20) NOT NULL,
            specifications JSONB,
            estimated_price NUMERIC(15,2),
            sort_order INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_rfq_items_quantity_positive CHECK (quantity > 0)
        );
    """)
    op.execute("CREATE INDEX ix_rfq_items_rfq_id ON rfq_items (rfq_id);")

    op.execute("""
        CREATE TABLE rfq_invitations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            supplier_company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            status invitationstatus NOT NULL DEFAULT 'INVITED',
            invited_by UUID REFERENCES users(id) ON DELETE SET NULL,
            invited_at TIMESTAMPTZ NOT NULL,
            responded_at TIMESTAMPTZ,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_rfq_invitations_rfq_supplier UNIQUE (rfq_id, supplier_company_id)
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_invitations_supplier_company_id "
        "ON rfq_invitations (supplier_company_id);"
    )

    op.execute("""
        CREATE TABLE rfq_status_history (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            from_status rfqstatus,
            to_status rfqstatus NOT NULL,
            changed_by UUID REFERENCES users(id) ON DELETE SET NULL,
            is_override BOOLEAN NOT NULL DEFAULT false,
            reason TEXT,
            metadata_extra JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_rfq_status_history_rfq_id ON rfq_status_history (rfq_id, created_at);"
    )

    # ── 5. Bids ───────────────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE bids (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            bid_number VARCHAR(20) NOT NULL,
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            supplier_company_id UUID NOT NULL REFERENCES companies(id) ON DELETE CASCADE,
            submitted_by UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            status bidstatus NOT NULL DEFAULT 'DRAFT',
            total_amount NUMERIC(15,2) NOT NULL DEFAULT 0,
            currency VARCHAR(3) NOT NULL DEFAULT 'USD',
            proposed_delivery_date TIMESTAMPTZ,
            technical_proposal TEXT,
            commercial_terms TEXT,
            notes TEXT,
            technical_score NUMERIC(4,2),
            commercial_score NUMERIC(4,2),
            delivery_score NUMERIC(4,2),
            total_score NUMERIC(4,2),
            evaluation_notes TEXT,
            evaluated_by UUID REFERENCES users(id) ON DELETE SET NULL,
            evaluated_at TIMESTAMPTZ,
            submitted_at TIMESTAMPTZ,
            awarded_at TIMESTAMPTZ,
            rejected_at TIMESTAMPTZ,
            rejection_reason TEXT,
            withdrawn_at TIMESTAMPTZ,
            metadata_extra JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_bids_bid_number UNIQUE (bid_number),
            CONSTRAINT ck_bids_total_amount_non_negative CHECK (total_amount >= 0)
        );
    """)
    # One bid row per supplier per RFQ; the service maps violations to CONFLICT
    op.execute(
        "CREATE UNIQUE INDEX uq_bids_rfq_supplier ON bids (rfq_id, supplier_company_id);"
    )
    op.execute("CREATE INDEX ix_bids_status ON bids (status);")

    op.execute("""
        CREATE TABLE bid_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            bid_id UUID NOT NULL REFERENCES bids(id) ON DELETE CASCADE,
            rfq_item_id UUID REFERENCES rfq_items(id) ON DELETE SET NULL,
            item_name VARCHAR(255) NOT NULL,
            item_description TEXT,
            quantity NUMERIC(12,3) NOT NULL,
            unit_of_measure VARCHAR(20) NOT NULL,
            unit_price NUMERIC(15,4) NOT NULL,
            total_price NUMERIC(15,2) NOT NULL,
            specifications JSONB,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT ck_bid_items_unit_price_non_negative CHECK (unit_price >= 0),
            CONSTRAINT ck_bid_items_quantity_positive CHECK (quantity > 0)
        );
    """)
    op.execute("CREATE INDEX ix_bid_items_bid_id ON bid_items (bid_id);")

    # ── 6. Negotiations ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE negotiations (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE CASCADE,
            bid_id UUID NOT NULL REFERENCES bids(id) ON DELETE CASCADE,
            initiated_by UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            supplier_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            status negotiationstatus NOT NULL DEFAULT 'ACTIVE',
            initial_message TEXT,
            counter_offer_data JSONB,
            pending_offer_message_id UUID,
            accepted_offer_message_id UUID,
            last_activity_at TIMESTAMPTZ,
            closed_at TIMESTAMPTZ,
            purchase_order_id UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_negotiations_bid_id UNIQUE (bid_id)
        );
    """)
    op.execute("CREATE INDEX ix_negotiations_status ON negotiations (status);")
    op.execute("CREATE INDEX ix_negotiations_initiated_by ON negotiations (initiated_by);")
    op.execute("CREATE INDEX ix_negotiations_supplier_id ON negotiations (supplier_id);")

    op.execute("""
        CREATE TABLE negotiation_messages (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            negotiation_id UUID NOT NULL REFERENCES negotiations(id) ON DELETE CASCADE,
            sender_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            message TEXT NOT NULL,
            message_type messagetype NOT NULL DEFAULT 'TEXT',
            offer_data JSONB,
            offer_status offerstatus,
            is_read BOOLEAN NOT NULL DEFAULT false,
            read_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT clock_timestamp()
        );
    """)
    op.execute(
        "CREATE INDEX ix_negotiation_messages_negotiation_id "
        "ON negotiation_messages (negotiation_id, created_at);"
    )
    op.execute(
        "CREATE INDEX ix_negotiation_messages_unread "
        "ON negotiation_messages (negotiation_id) WHERE is_read = false;"
    )

    # ── 7. Purchase orders ────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE purchase_orders (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            po_number VARCHAR(20) NOT NULL,
            rfq_id UUID NOT NULL REFERENCES rfqs(id) ON DELETE RESTRICT,
            bid_id UUID NOT NULL REFERENCES bids(id) ON DELETE RESTRICT,
            negotiation_id UUID REFERENCES negotiations(id) ON DELETE SET NULL,
            supplier_company_id UUID NOT NULL REFERENCES companies(id) ON DELETE RESTRICT,
            buyer_company_id UUID NOT NULL REFERENCES companies(id) ON DELETE RESTRICT,
            created_by UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            status purchaseorderstatus NOT NULL DEFAULT 'DRAFT',
            total_amount NUMERIC(15,2) NOT NULL,
            currency VARCHAR(3) NOT NULL DEFAULT 'USD',
            negotiated_terms JSONB,
            order_date DATE NOT NULL,
            expected_delivery_date DATE,
            actual_delivery_date DATE,
            delivery_address TEXT,
            payment_terms TEXT,
            terms_conditions TEXT,
            notes TEXT,
            internal_notes TEXT,
            requires_approval BOOLEAN NOT NULL DEFAULT false,
            approved_amount NUMERIC(15,2),
            approval_level INTEGER NOT NULL DEFAULT 1,
            current_approval_step INTEGER NOT NULL DEFAULT 0,
            approval_notes TEXT,
            approved_by UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at TIMESTAMPTZ,
            rejection_reason TEXT,
            rejected_by UUID REFERENCES users(id) ON DELETE SET NULL,
            rejected_at TIMESTAMPTZ,
            sent_at TIMESTAMPTZ,
            acknowledged_at TIMESTAMPTZ,
            started_at TIMESTAMPTZ,
            delivered_at TIMESTAMPTZ,
            delivery_notes TEXT,
            delivery_attachments JSONB NOT NULL DEFAULT '[]',
            completed_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            cancellation_reason TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            CONSTRAINT uq_purchase_orders_po_number UNIQUE (po_number),
            CONSTRAINT uq_purchase_orders_bid_id UNIQUE (bid_id),
            CONSTRAINT ck_purchase_orders_total_non_negative CHECK (total_amount >= 0)
        );
    """)
    op.execute("CREATE INDEX ix_purchase_orders_status ON purchase_orders (status);")
    op.execute(
        "CREATE INDEX ix_purchase_orders_supplier_company_id "
        "ON purchase_orders (supplier_company_id);"
    )
    op.execute(
        "CREATE INDEX ix_purchase_orders_buyer_company_id ON purchase_orders (buyer_company_id);"
    )

    # Circular references between negotiations, their messages and the PO
    op.execute("""
        ALTER TABLE negotiations
            ADD CONSTRAINT fk_negotiations_pending_offer_message_id
                FOREIGN KEY (pending_offer_message_id)
                REFERENCES negotiation_messages(id) ON DELETE SET NULL,
            ADD CONSTRAINT fk_negotiations_accepted_offer_message_id
                FOREIGN KEY (accepted_offer_message_id)
                REFERENCES negotiation_messages(id) ON DELETE SET NULL,
            ADD CONSTRAINT fk_negotiations_purchase_order_id
                FOREIGN KEY (purchase_order_id)
                REFERENCES purchase_orders(id) ON DELETE SET NULL;
    """)

    op.execute("""
        CREATE TABLE purchase_order_items (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            purchase_order_id UUID NOT NULL REFERENCES purchase_orders(id) ON DELETE CASCADE,
            rfq_item_id UUID REFERENCES rfq_items(id) ON DELETE SET NULL,
            item_name VARCHAR(255) NOT NULL,
            item_description TEXT,
            quantity NUMERIC(12,3) NOT NULL,
            unit_of_measure VARCHAR(20) NOT NULL,
            unit_price NUMERIC(15,4) NOT NULL,
            total_price NUMERIC(15,2) NOT NULL,
            specifications JSONB,
            notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_purchase_order_items_po_id ON purchase_order_items (purchase_order_id);"
    )

    op.execute("""
        CREATE TABLE purchase_order_status_history (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            purchase_order_id UUID NOT NULL REFERENCES purchase_orders(id) ON DELETE CASCADE,
            from_status purchaseorderstatus,
            to_status purchaseorderstatus NOT NULL,
            changed_by UUID REFERENCES users(id) ON DELETE SET NULL,
            is_override BOOLEAN NOT NULL DEFAULT false,
            notes TEXT,
            metadata_extra JSONB NOT NULL DEFAULT '{}',
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_purchase_order_status_history_po_id "
        "ON purchase_order_status_history (purchase_order_id, created_at);"
    )

    op.execute("""
        CREATE TABLE purchase_order_modifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            purchase_order_id UUID NOT NULL REFERENCES purchase_orders(id) ON DELETE CASCADE,
            field_name VARCHAR(64) NOT NULL,
            old_value TEXT,
            new_value TEXT,
            reason TEXT,
            modified_by UUID NOT NULL REFERENCES users(id) ON DELETE RESTRICT,
            status modificationstatus NOT NULL DEFAULT 'PENDING',
            approved_by UUID REFERENCES users(id) ON DELETE SET NULL,
            approved_at TIMESTAMPTZ,
            approval_notes TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_purchase_order_modifications_po_id "
        "ON purchase_order_modifications (purchase_order_id, status);"
    )

    # ── 8. Notifications ──────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE notifications (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            user_id UUID NOT NULL REFERENCES users(id) ON DELETE CASCADE,
            type VARCHAR(64) NOT NULL,
            title VARCHAR(255) NOT NULL,
            message TEXT NOT NULL,
            related_user_id UUID REFERENCES users(id) ON DELETE SET NULL,
            related_entity_id UUID,
            related_entity_type VARCHAR(64),
            data JSONB NOT NULL DEFAULT '{}',
            is_read BOOLEAN NOT NULL DEFAULT false,
            is_email_sent BOOLEAN NOT NULL DEFAULT false,
            email_sent_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute(
        "CREATE INDEX ix_notifications_user_id_is_read ON notifications (user_id, is_read);"
    )
    op.execute(
        "CREATE INDEX ix_notifications_type_created_at ON notifications (type, created_at);"
    )

    # ── 9. Event outbox ───────────────────────────────────────────────────
    op.execute("""
        CREATE TABLE event_outbox (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_type VARCHAR(100) NOT NULL,
            aggregate_type VARCHAR(50) NOT NULL,
            aggregate_id VARCHAR(64) NOT NULL,
            actor_id UUID,
            request_id VARCHAR(64),
            payload JSONB NOT NULL DEFAULT '{}',
            status eventstatus NOT NULL DEFAULT 'PENDING',
            retry_count INTEGER NOT NULL DEFAULT 0,
            max_retries INTEGER NOT NULL DEFAULT 3,
            last_error TEXT,
            processed_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT now()
        );
    """)
    op.execute("CREATE INDEX ix_event_outbox_event_type ON event_outbox (event_type);")
    op.execute(
        "CREATE INDEX ix_event_outbox_aggregate ON event_outbox (aggregate_type, aggregate_id);"
    )
    op.execute(
        "CREATE INDEX ix_event_outbox_pending ON event_outbox (created_at) "
        "WHERE status = 'PENDING';"
    )

    op.execute("""
        CREATE TABLE processed_events (
            id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
            event_id UUID NOT NULL,
            event_type VARCHAR(100) NOT NULL,
            handler_names VARCHAR(500) NOT NULL,
            processed_at TIMESTAMPTZ NOT NULL DEFAULT now(),
            expires_at TIMESTAMPTZ NOT NULL,
            CONSTRAINT uq_processed_events_event_id UNIQUE (event_id)
        );
    """)
    op.execute("CREATE INDEX ix_processed_events_expires_at ON processed_events (expires_at);")


def downgrade() -> None:
    op.execute("""
        ALTER TABLE IF EXISTS negotiations
            DROP CONSTRAINT IF EXISTS fk_negotiations_pending_offer_message_id,
            DROP CONSTRAINT IF EXISTS fk_negotiations_accepted_offer_message_id,
            DROP CONSTRAINT IF EXISTS fk_negotiations_purchase_order_id;
    """)
    for table in TABLES:
        op.execute(f"DROP TABLE IF EXISTS {table} CASCADE;")
    for name in reversed(list(ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name};")
