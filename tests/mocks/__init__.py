from .factories import WEBHOOK_SIGNATURE_KEY, WEBHOOK_URL, make_product, sign, webhook_body
from .mock_square import MockSquareClient, make_item
from .mock_stores import InMemoryConflictStore, InMemoryProductStore
