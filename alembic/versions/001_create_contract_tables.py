"""Create back-office tables (api_users, indicacoes, contracts, contract_units)

Revision ID: 001_create_contract_tables
Revises:
Create Date: 2026-10-19

Note: Using IF NOT EXISTS pattern to make migration idempotent.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers, used by Alembic.
revision = '001_create_contract_tables'
down_revision = None
branch_labels = None
depends_on = None


def table_exists(conn, table_name):
    """Check if a table exists in the database."""
    result = conn.execute(text(
        "SELECT EXISTS (SELECT FROM information_schema.tables WHERE table_name = :name)"
    ), {"name": table_name})
    return result.scalar()


def upgrade():
    """Create contract tables if they don't exist."""
    conn = op.get_bind()

    if not table_exists(conn, 'api_users'):
        op.create_table(
            'api_users',
            sa.Column('id', sa.Integer(), primary_key=True, index=True),
            sa.Column('email', sa.String(255), unique=True, index=True, nullable=False),
            sa.Column('full_name', sa.String(255)),
            sa.Column('role', sa.String(30), nullable=False, server_default='vendedor_externo'),
            sa.Column('company_name', sa.String(255)),
            sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
        )

    if not table_exists(conn, 'indicacoes'):
        op.create_table(
            'indicacoes',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, index=True),
            sa.Column('user_id', sa.String(100), nullable=False, index=True),
            sa.Column('nome', sa.String(255), nullable=False),
            sa.Column('documento', sa.String(20)),
            sa.Column('email', sa.String(255)),
            sa.Column('telefone', sa.String(30)),
            sa.Column('cidade', sa.String(120)),
            sa.Column('estado', sa.String(2)),
            sa.Column('marca', sa.String(20), nullable=False, server_default='rental'),
            sa.Column('tipo', sa.String(2), nullable=False, server_default='PF'),
            sa.Column('status', sa.String(30)),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        )

    if not table_exists(conn, 'contracts'):
        op.create_table(
            'contracts',
            sa.Column('id', UUID(as_uuid=True), primary_key=True, index=True),
            sa.Column('type', sa.String(20), nullable=False),
            sa.Column('brand', sa.String(20), nullable=False, index=True),
            sa.Column('status', sa.String(20), nullable=False, server_default='DRAFT', index=True),
            sa.Column('client_data', sa.JSON(), nullable=False),
            sa.Column('calculation_data', sa.JSON(), nullable=False),
            sa.Column('html_content', sa.Text()),
            sa.Column('docx_url', sa.String(500)),
            sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('indicacao_id', UUID(as_uuid=True), index=True),
            sa.Column('created_by', sa.String(100)),
            sa.Column('approved_by', sa.String(100)),
            sa.Column('approved_at', sa.DateTime(timezone=True)),
            sa.Column('expires_at', sa.DateTime(timezone=True), index=True),
            sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True)),
        )
        # Only the application's own transitions are ever written
        conn.execute(text("""
            ALTER TABLE contracts
            ADD CONSTRAINT contracts_status_check
            CHECK (status IN ('DRAFT', 'APPROVED', 'EXPIRED'))
        """))

    if not table_exists(conn, 'contract_units'):
        op.create_table(
            'contract_units',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column(
                'contract_id',
                UUID(as_uuid=True),
                sa.ForeignKey('contracts.id', ondelete='CASCADE'),
                nullable=False,
                index=True,
            ),
            sa.Column('unit_name', sa.String(255), nullable=False),
            sa.Column('consumption_avg', sa.Float(), nullable=False, server_default='0'),
            sa.Column('consumptions', sa.JSON(), nullable=False),
        )


def downgrade():
    """Drop contract tables."""
    op.drop_table('contract_units')
    op.drop_table('contracts')
    op.drop_table('indicacoes')
    op.drop_table('api_users')
