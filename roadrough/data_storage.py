import sqlite3
import threading
import logging
from contextlib import contextmanager

from .errors import StorageFailure

logger = logging.getLogger("RoadRough")

DB_PATH = "road_roughness.db"

RIDES = "rides"
RIDE_POINTS = "ride_points"
ROUGHNESS_MAP = "roughness_map"

# collection -> (key column, foreign key column, columns in record order)
COLLECTIONS = {
    RIDES: ("ride_id", None,
            ("ride_id", "start_time", "end_time", "duration_seconds", "total_points", "status")),
    RIDE_POINTS: ("id", "ride_id",
                  ("id", "ride_id", "timestamp", "latitude", "longitude",
                   "roughness_value", "horizontal_accuracy", "altitude")),
    ROUGHNESS_MAP: ("geo_cell_id", None,
                    ("geo_cell_id", "latitude", "longitude", "roughness_value", "last_updated")),
}


class DataStorage:
    """Durable key/value store over SQLite with one table per collection.

    Records go in and come out as plain dicts. Every failure surfaces as
    StorageFailure.
    """

    def __init__(self, db_path=DB_PATH):
        self.db_path = db_path
        self.lock = threading.Lock()
        self._initialize_db()

    @contextmanager
    def _connection(self):
        try:
            conn = sqlite3.connect(self.db_path)
        except sqlite3.Error as e:
            raise StorageFailure(f"Could not open database {self.db_path}: {e}") from e
        conn.row_factory = sqlite3.Row
        try:
            with conn:
                yield conn
        except sqlite3.Error as e:
            raise StorageFailure(f"Database error: {e}") from e
        finally:
            conn.close()

    def _initialize_db(self):
        with self.lock, self._connection() as conn:
            c = conn.cursor()
            c.execute('''
                CREATE TABLE IF NOT EXISTS rides (
                    ride_id INTEGER PRIMARY KEY,
                    start_time INTEGER NOT NULL,
                    end_time INTEGER,
                    duration_seconds INTEGER NOT NULL DEFAULT 0,
                    total_points INTEGER NOT NULL DEFAULT 0,
                    status TEXT NOT NULL
                )
            ''')
            c.execute('''
                CREATE TABLE IF NOT EXISTS ride_points (
                    id TEXT PRIMARY KEY,
                    ride_id INTEGER NOT NULL,
                    timestamp INTEGER NOT NULL,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    roughness_value REAL NOT NULL,
                    horizontal_accuracy REAL,
                    altitude REAL
                )
            ''')
            c.execute('CREATE INDEX IF NOT EXISTS by_ride_id ON ride_points (ride_id)')
            c.execute('''
                CREATE TABLE IF NOT EXISTS roughness_map (
                    geo_cell_id TEXT PRIMARY KEY,
                    latitude REAL NOT NULL,
                    longitude REAL NOT NULL,
                    roughness_value REAL NOT NULL,
                    last_updated INTEGER NOT NULL
                )
            ''')

    @staticmethod
    def _layout(collection):
        try:
            return COLLECTIONS[collection]
        except KeyError:
            raise StorageFailure(f"Unknown collection: {collection}") from None

    @staticmethod
    def _upsert_sql(collection):
        key, _, columns = COLLECTIONS[collection]
        placeholders = ", ".join("?" for _ in columns)
        updates = ", ".join(f"{col} = excluded.{col}" for col in columns if col != key)
        return (f"INSERT INTO {collection} ({', '.join(columns)}) VALUES ({placeholders}) "
                f"ON CONFLICT({key}) DO UPDATE SET {updates}")

    @staticmethod
    def _values(columns, record):
        missing = [col for col in columns if col not in record]
        if missing:
            raise StorageFailure(f"Record is missing fields: {', '.join(missing)}")
        return tuple(record[col] for col in columns)

    def get(self, collection, key):
        key_column, _, columns = self._layout(collection)
        with self.lock, self._connection() as conn:
            row = conn.execute(
                f"SELECT {', '.join(columns)} FROM {collection} WHERE {key_column} = ?", (key,)
            ).fetchone()
        return dict(row) if row is not None else None

    def put(self, collection, record):
        _, _, columns = self._layout(collection)
        values = self._values(columns, record)
        with self.lock, self._connection() as conn:
            conn.execute(self._upsert_sql(collection), values)

    def get_all(self, collection):
        _, _, columns = self._layout(collection)
        with self.lock, self._connection() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(columns)} FROM {collection} ORDER BY rowid ASC"
            ).fetchall()
        return [dict(row) for row in rows]

    def get_by_foreign_key(self, collection, key):
        """All records of ``collection`` owned by ``key``, in insertion order."""
        _, foreign_key, columns = self._layout(collection)
        if foreign_key is None:
            raise StorageFailure(f"Collection {collection} has no secondary index")
        with self.lock, self._connection() as conn:
            rows = conn.execute(
                f"SELECT {', '.join(columns)} FROM {collection} "
                f"WHERE {foreign_key} = ? ORDER BY rowid ASC", (key,)
            ).fetchall()
        return [dict(row) for row in rows]

    def finalize_ride(self, ride, points):
        """Flush a ride's points and its final summary in one transaction."""
        point_columns = COLLECTIONS[RIDE_POINTS][2]
        ride_columns = COLLECTIONS[RIDES][2]
        point_values = [self._values(point_columns, point.to_record()) for point in points]
        ride_values = self._values(ride_columns, ride.to_record())

        with self.lock, self._connection() as conn:
            conn.executemany(self._upsert_sql(RIDE_POINTS), point_values)
            conn.execute(self._upsert_sql(RIDES), ride_values)
        logger.info(f"Stored ride {ride.ride_id} with {len(point_values)} points")


class RideBuffer:
    """In-memory points of the active ride, kept until the ride is flushed."""

    def __init__(self):
        self.ride_id = None
        self._points = []
        self._lock = threading.Lock()

    def __len__(self):
        with self._lock:
            return len(self._points)

    def begin(self, ride_id):
        with self._lock:
            self.ride_id = ride_id
            self._points = []

    def append(self, point):
        with self._lock:
            if point.ride_id != self.ride_id:
                raise ValueError(f"Point belongs to ride {point.ride_id}, buffer holds ride {self.ride_id}")
            self._points.append(point)

    def points(self):
        with self._lock:
            return list(self._points)

    def drain(self):
        """Take the buffered points and detach the buffer from its ride."""
        with self._lock:
            points, self._points = self._points, []
            self.ride_id = None
        return points
