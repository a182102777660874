"""SQLAlchemy ORM models for the FreeRADIUS accounting schema.

The tables are owned by the RADIUS server; this service only reads them.
"""

from sqlalchemy import BigInteger, Column, DateTime, Index, Integer, String

from radreport.database import Base

# SQLite only autoincrements INTEGER primary keys
_RowId = BigInteger().with_variant(Integer, "sqlite")


class RadAcct(Base):
    """One RADIUS accounting session.

    Attributes:
        radacctid: Auto-incremented session id.
        username: The subscriber's login (PPPoE username).
        nasipaddress: Address of the concentrator that terminated the session.
        nasportid: Concentrator port/interface identifier.
        acctstarttime: When the session started.
        acctstoptime: When the session ended; NULL while the session is up.
        acctinputoctets: Octets received from the subscriber (upload).
        acctoutputoctets: Octets sent to the subscriber (download).
        acctterminatecause: RADIUS Acct-Terminate-Cause of a closed session.
        framedipaddress: Address assigned to the subscriber.
        callingstationid: Usually the subscriber device's MAC address.
    """

    __tablename__ = "radacct"

    radacctid = Column(_RowId, primary_key=True, autoincrement=True)
    username = Column(String(64), nullable=False, default="")
    nasipaddress = Column(String(15), nullable=False, default="")
    nasportid = Column(String(32))
    acctstarttime = Column(DateTime)
    acctstoptime = Column(DateTime)
    acctinputoctets = Column(BigInteger, default=0)
    acctoutputoctets = Column(BigInteger, default=0)
    acctterminatecause = Column(String(32), nullable=False, default="")
    framedipaddress = Column(String(15), nullable=False, default="")
    callingstationid = Column(String(50), nullable=False, default="")

    __table_args__ = (
        Index("idx_radacct_username", "username"),
        Index("idx_radacct_nasipaddress", "nasipaddress"),
        Index("idx_radacct_username_start", "username", "acctstarttime"),
        Index("idx_radacct_acctstoptime", "acctstoptime"),
    )

    def __repr__(self):
        return (
            f"<RadAcct(radacctid={self.radacctid}, username={self.username!r}, "
            f"nasipaddress={self.nasipaddress!r}, acctstarttime={self.acctstarttime})>"
        )


class Nas(Base):
    """A network access server (concentrator) registered with FreeRADIUS."""

    __tablename__ = "nas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nasname = Column(String(128), nullable=False, index=True)
    shortname = Column(String(32))
    type = Column(String(30), default="other")
    ports = Column(Integer)
    description = Column(String(200), default="RADIUS Client")

    def __repr__(self):
        return f"<Nas(nasname={self.nasname!r}, shortname={self.shortname!r})>"
