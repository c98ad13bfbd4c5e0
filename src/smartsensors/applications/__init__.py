from ._session import Session, Tuneable, load_session
from ._consumer import StreamConsumer
