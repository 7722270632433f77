from pymongo import AsyncMongoClient

from config import DB_NAME, MONGO_URI

client = AsyncMongoClient(MONGO_URI, tz_aware=False)
db = client[DB_NAME]
