from sqlalchemy.orm import declarative_base

# Chatbot-owned tables
Base = declarative_base()

# Tables of the external ERP store; mapped for querying, never created by us in production
ErpBase = declarative_base()
