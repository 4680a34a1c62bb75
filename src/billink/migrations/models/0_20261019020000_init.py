from tortoise import BaseDBAsyncClient


async def upgrade(db: BaseDBAsyncClient) -> str:
    return """
        CREATE TABLE IF NOT EXISTS "customer" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "first_name" VARCHAR(100) NOT NULL,
    "last_name" VARCHAR(100) NOT NULL,
    "meter_number" VARCHAR(50) NOT NULL UNIQUE,
    "phone_number" VARCHAR(20),
    "phone_verified" BOOL NOT NULL DEFAULT False,
    "birthdate" DATE,
    "status" VARCHAR(8) NOT NULL DEFAULT 'pending',
    "credit_balance" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "credit_limit" DECIMAL(12,2),
    "balance_version" INT NOT NULL DEFAULT 0,
    CONSTRAINT "chk_customer_credit_balance" CHECK ("credit_balance" >= 0)
);
COMMENT ON COLUMN "customer"."status" IS 'PENDING: pending\nACTIVE: active\nINACTIVE: inactive';
COMMENT ON COLUMN "customer"."balance_version" IS 'Bumped on every credit balance write';
COMMENT ON TABLE "customer" IS 'A water service account holder.';
CREATE TABLE IF NOT EXISTS "bill" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "meter_number" VARCHAR(50) NOT NULL,
    "previous_reading" DECIMAL(12,3) NOT NULL,
    "current_reading" DECIMAL(12,3) NOT NULL,
    "consumption" DECIMAL(12,3) NOT NULL,
    "gross_amount" DECIMAL(12,2) NOT NULL,
    "senior_discount" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "credit_applied" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "amount_paid" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "penalty" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "net_due" DECIMAL(12,2) NOT NULL,
    "billing_date" DATE NOT NULL,
    "due_date" DATE NOT NULL,
    "status" VARCHAR(20) NOT NULL DEFAULT 'Unpaid',
    "is_archived" BOOL NOT NULL DEFAULT False,
    "created_by" VARCHAR(64),
    "customer_id" UUID NOT NULL REFERENCES "customer" ("id") ON DELETE CASCADE,
    CONSTRAINT "chk_bill_readings" CHECK ("current_reading" >= "previous_reading"),
    CONSTRAINT "chk_bill_penalty" CHECK ("penalty" >= 0)
);
CREATE INDEX IF NOT EXISTS "idx_bill_status_due" ON "bill" ("status", "due_date");
CREATE INDEX IF NOT EXISTS "idx_bill_customer_period" ON "bill" ("customer_id", "billing_date");
COMMENT ON COLUMN "bill"."billing_date" IS 'Day the reading was billed; its month is the billing period';
COMMENT ON COLUMN "bill"."gross_amount" IS 'Amount after senior discount, before credit';
COMMENT ON COLUMN "bill"."net_due" IS 'Principal still owed, excluding penalty';
COMMENT ON COLUMN "bill"."status" IS 'UNPAID: Unpaid\nPARTIALLY_PAID: Partially Paid\nPAID: Paid\nOVERDUE: Overdue\nREJECTED: Rejected';
COMMENT ON TABLE "bill" IS 'A water bill issued from a pair of meter readings.';
CREATE TABLE IF NOT EXISTS "ratetier" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "consumption_min" DECIMAL(12,3) NOT NULL,
    "consumption_max" DECIMAL(12,3),
    "rate_per_unit" DECIMAL(12,4),
    "fixed_amount" DECIMAL(12,2),
    "is_active" BOOL NOT NULL DEFAULT True,
    "created_by" VARCHAR(64),
    CONSTRAINT "chk_ratetier_one_price" CHECK (("rate_per_unit" IS NULL) <> ("fixed_amount" IS NULL))
);
COMMENT ON TABLE "ratetier" IS 'A consumption range priced either per unit or at a fixed amount.';
CREATE TABLE IF NOT EXISTS "credittransaction" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "transaction_type" VARCHAR(10) NOT NULL,
    "amount" DECIMAL(12,2) NOT NULL,
    "previous_balance" DECIMAL(12,2) NOT NULL,
    "new_balance" DECIMAL(12,2) NOT NULL,
    "description" VARCHAR(255),
    "reference_type" VARCHAR(50),
    "reference_id" VARCHAR(64),
    "created_by" VARCHAR(64),
    "customer_id" UUID NOT NULL REFERENCES "customer" ("id") ON DELETE CASCADE
);
CREATE INDEX IF NOT EXISTS "idx_credittrans_customer" ON "credittransaction" ("customer_id", "created_at");
COMMENT ON COLUMN "credittransaction"."transaction_type" IS 'CREDIT: credit\nDEBIT: debit\nADJUSTMENT: adjustment';
COMMENT ON COLUMN "credittransaction"."amount" IS 'Signed delta for adjustments, positive otherwise';
COMMENT ON TABLE "credittransaction" IS 'Append-only entry in a customer''s credit ledger.';
CREATE TABLE IF NOT EXISTS "paymentrecord" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "amount_paid" DECIMAL(12,2) NOT NULL,
    "penalty_paid" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "change_given" DECIMAL(12,2) NOT NULL DEFAULT 0,
    "method" VARCHAR(6) NOT NULL DEFAULT 'Cash',
    "receipt_number" VARCHAR(64) NOT NULL UNIQUE,
    "status" VARCHAR(8) NOT NULL DEFAULT 'Paid',
    "payment_date" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "created_by" VARCHAR(64),
    "bill_id" UUID NOT NULL REFERENCES "bill" ("id") ON DELETE CASCADE,
    "customer_id" UUID NOT NULL REFERENCES "customer" ("id") ON DELETE CASCADE
);
COMMENT ON COLUMN "paymentrecord"."method" IS 'CASH: Cash\nCHECK: Check\nCREDIT: Credit\nONLINE: Online';
COMMENT ON COLUMN "paymentrecord"."status" IS 'PAID: Paid\nPENDING: Pending\nREJECTED: Rejected';
COMMENT ON TABLE "paymentrecord" IS 'A settled (or pending) payment against a bill.';
CREATE TABLE IF NOT EXISTS "paymentsubmission" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "amount" DECIMAL(12,2) NOT NULL,
    "payment_method" VARCHAR(50) NOT NULL,
    "reference_number" VARCHAR(64),
    "proof_path" VARCHAR(255) NOT NULL,
    "notes" TEXT,
    "status" VARCHAR(8) NOT NULL DEFAULT 'pending',
    "reviewed_by" VARCHAR(64),
    "reviewed_at" TIMESTAMPTZ,
    "bill_id" UUID NOT NULL REFERENCES "bill" ("id") ON DELETE CASCADE,
    "customer_id" UUID NOT NULL REFERENCES "customer" ("id") ON DELETE CASCADE
);
COMMENT ON COLUMN "paymentsubmission"."status" IS 'PENDING: pending\nAPPROVED: approved\nREJECTED: rejected';
COMMENT ON TABLE "paymentsubmission" IS 'Customer-submitted proof of an external payment awaiting review.';
CREATE TABLE IF NOT EXISTS "systemsetting" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "setting_key" VARCHAR(100) NOT NULL UNIQUE,
    "setting_value" VARCHAR(255) NOT NULL,
    "updated_by" VARCHAR(64)
);
COMMENT ON TABLE "systemsetting" IS 'Key/value business configuration editable by administrators.';
CREATE TABLE IF NOT EXISTS "auditlog" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "user_id" VARCHAR(64),
    "role" VARCHAR(20),
    "action" VARCHAR(100) NOT NULL,
    "entity" VARCHAR(100),
    "entity_id" VARCHAR(64),
    "details" JSONB,
    "ip_address" VARCHAR(64)
);
COMMENT ON TABLE "auditlog" IS 'Who did what to which entity.';
CREATE TABLE IF NOT EXISTS "otpchallenge" (
    "id" UUID NOT NULL PRIMARY KEY,
    "created_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "updated_at" TIMESTAMPTZ NOT NULL DEFAULT CURRENT_TIMESTAMP,
    "phone_number" VARCHAR(20) NOT NULL UNIQUE,
    "code_hash" VARCHAR(64) NOT NULL,
    "purpose" VARCHAR(30) NOT NULL,
    "expires_at" TIMESTAMPTZ NOT NULL,
    "attempts" INT NOT NULL DEFAULT 0,
    "customer_id" UUID REFERENCES "customer" ("id") ON DELETE CASCADE
);
COMMENT ON TABLE "otpchallenge" IS 'A one-time code awaiting verification for a phone number.';
CREATE TABLE IF NOT EXISTS "aerich" (
    "id" SERIAL NOT NULL PRIMARY KEY,
    "version" VARCHAR(255) NOT NULL,
    "app" VARCHAR(100) NOT NULL,
    "content" JSONB NOT NULL
);"""


async def downgrade(db: BaseDBAsyncClient) -> str:
    return """
        """
