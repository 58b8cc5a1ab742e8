from sqlalchemy import Boolean, Column, DateTime, Integer, JSON, Numeric, String, Text
from shared.config.database import Base

class OrderRow(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, autoincrement=True)
    external_order_id = Column(String(255), unique=True, nullable=False, index=True)
    store_id = Column(String(255), default="", index=True)
    customer_name = Column(String(255), nullable=False, default="Unknown")
    customer_phone = Column(String(100), default="")
    customer_email = Column(String(255), default="")
    delivery_address = Column(Text, default="")
    total_price = Column(Numeric(10, 2), default=0)
    currency = Column(String(10), default="USD")
    status = Column(String(50), index=True) # free text, as reported upstream
    order_type = Column(String(50))
    items = Column(JSON, default=list)
    raw_payload = Column(JSON)
    created_at = Column(DateTime(timezone=True), nullable=False)
    updated_at = Column(DateTime(timezone=True), nullable=False)
    fetched_at = Column(DateTime(timezone=True), nullable=False, index=True)

    # Dispatch state, owned by the dispatch controller; never touched by upsert
    dispatch_sent = Column(Boolean, nullable=False, default=False)
    partner_delivery_id = Column(String(255), nullable=True)
    dispatch_sent_at = Column(DateTime(timezone=True), nullable=True)
    tracking_url = Column(Text, nullable=True)
