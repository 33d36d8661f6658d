"""Constants for W3C extended (IIS) log parsing and geo enrichment."""

COMMENT_PREFIX = "#"
FIELDS_PREFIX = "#Fields:"
SOFTWARE_PREFIX = "#Software:"

# Products that write W3C headers but are not IIS web logs
UNSUPPORTED_SOFTWARE = ("Microsoft Exchange",)

GEO_CITY_COLUMN = "GeoCity"
GEO_COUNTRY_COLUMN = "GeoCountry"
GEO_COLUMNS = (GEO_CITY_COLUMN, GEO_COUNTRY_COLUMN)

NOT_AVAILABLE = "NA"

DEFAULT_IP_FIELD = "c-ip"
DEFAULT_LOG_EXTENSION = ".log"
DEFAULT_FLUSH_INTERVAL = 10_000

LOOPBACK_ADDRESSES = frozenset({"127.0.0.1", "::1"})
LOCAL_PREFIXES = ("10.", "192.168", "fe80")

# IPy iptype() values that are geolocatable
MONITORED_IP_TYPES = frozenset(
    {
        "PUBLIC",
        "ALLOCATED APNIC",
        "ALLOCATED ARIN",
        "ALLOCATED RIPE NCC",
        "ALLOCATED LACNIC",
        "ALLOCATED AFRINIC",
    }
)

GEOIP_DB_FILENAMES = ("GeoIP2-City.mmdb", "GeoLite2-City.mmdb")
ALLOWED_GEOIP_LOCALES = ["de", "en", "es", "fr", "ja", "pt-BR", "ru", "zh-CN"]
GEOIP_LOCALES_DEFAULT = ["en"]

BAD_DATA_FILENAME = "BadDataRows_REVIEW_ME.txt"
UNIQUE_IPS_FILENAME = "!UniqueIPs.csv"
OUTPUT_TIMESTAMP_FORMAT = "%Y%m%d%H%M%S"
