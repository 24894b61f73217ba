DOMAIN = "horsehealth"
VERSION = "0.1.0"

# Backend REST contract
DEFAULT_BASE_URL = "https://horsetrackerbackend.onrender.com/api"
HORSES_PATH = "horses"
UNASSIGNED_PATH = "unassigned"
UNASSIGNED_PATH_LEGACY = "unassigned-devices"
UNASSIGNED_PATHS = (UNASSIGNED_PATH, UNASSIGNED_PATH_LEGACY)
ASSIGN_HORSE_PATH = "assign-horse"
LOCATION_PATH = "location"

# Config entry keys
CONF_ENTRY_NAME = "entry_name"
CONF_BASE_URL = "base_url"
CONF_UNASSIGNED_PATH = "unassigned_path"
CONF_POLL_INTERVAL = "poll_interval"
CONF_REQUEST_TIMEOUT = "request_timeout"
CONF_LOCATION_ENTITY = "location_entity"
CONF_REPORT_LOCATION = "report_location"
CONF_HIGH_ACCURACY = "high_accuracy"
CONF_MAX_READING_AGE = "max_reading_age"
CONF_LOCATION_TIMEOUT = "location_timeout"
CONF_FALLBACK_LATITUDE = "fallback_latitude"
CONF_FALLBACK_LONGITUDE = "fallback_longitude"

UNASSIGNED_PATH_AUTO = "auto"

# Polling (seconds)
DEFAULT_POLL_INTERVAL = 60
MIN_POLL_INTERVAL = 10
DEFAULT_REQUEST_TIMEOUT = 15

# Fallback reference position used until the location resolver has a fix
DEFAULT_FALLBACK_LATITUDE = 40.7128
DEFAULT_FALLBACK_LONGITUDE = -74.006

# Max offset in decimal degrees for synthesised horse coordinates (~1 km)
COORDINATE_JITTER = 0.01

# Location resolver
DEFAULT_LOCATION_ENTITY = "zone.home"
DEFAULT_LOCATION_TIMEOUT = 10
DEFAULT_MAX_READING_AGE = None  # seconds; None accepts a cached reading of any age
HIGH_ACCURACY_LIMIT = 100  # metres; worse readings are dropped in high accuracy mode

# Horse status values as sent by the backend
STATUS_NORMAL = "normal"
STATUS_ATTENTION = "attention"
STATUS_CRITICAL = "critical"
HORSE_STATUSES = (STATUS_NORMAL, STATUS_ATTENTION, STATUS_CRITICAL)

# Normal vital ranges for an adult horse at rest
HEART_RATE_RANGE = (36, 48)          # bpm
TEMPERATURE_RANGE = (37.2, 38.3)     # degrees Celsius
OXYGEN_SATURATION_RANGE = (95, 100)  # percent

# Collections fetched every cycle
COLLECTION_HORSES = "horses"
COLLECTION_UNASSIGNED = "unassigned_devices"

# Client-side behavioural notes
# One storage file per config entry, suffixed with the entry guid
STORAGE_KEY = f"{DOMAIN}.insights"
STORAGE_VERSION = 1
INSIGHTS_KEY_PREFIX = "insights_"

# Services
SERVICE_REFRESH = "refresh"
SERVICE_ASSIGN_HORSE = "assign_horse"
SERVICE_SAVE_INSIGHTS = "save_insights"
