from app.models.user import User
from app.models.book import Book
from app.models.order import Order

# add ALL models here
