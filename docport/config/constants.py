"""Constants for docport."""

# Default paths
DEFAULT_LOG_DIR = ".logs"
DEFAULT_CONFIG_FILE = "docport.yaml"

# Supported input extensions
SUPPORTED_EXTENSIONS = (".html", ".htm", ".docx", ".doc", ".xml")

# Target formats and the extension each one writes
TARGET_FORMATS = ("asciidoc", "writerside-markdown", "markdown", "zendesk", "text")
FORMAT_EXTENSIONS = {
    "asciidoc": ".adoc",
    "writerside-markdown": ".md",
    "markdown": ".md",
    "zendesk": ".html",
}
DEFAULT_OUTPUT_EXTENSION = ".txt"

# Formats whose output references copied image directories
IMAGE_FORMATS = frozenset({"asciidoc", "writerside-markdown", "zendesk"})

# Batch execution
DEFAULT_CHUNK_SIZE = 50
DEFAULT_CHUNK_DELAY = 1.0  # seconds between chunks
DEFAULT_PER_FILE_TIMEOUT = 30.0  # seconds
DEFAULT_HEARTBEAT_INTERVAL = 5.0  # seconds
DEFAULT_GROUP_SIZE = 10
DEFAULT_MAX_DEPTH = 32

# Binary / oversize detection
DEFAULT_MAX_FILE_SIZE = 5 * 1024 * 1024  # 5 MB
BINARY_PREFIX_BYTES = 64 * 1024
NON_PRINTABLE_SAMPLE_CHARS = 8 * 1024
NON_PRINTABLE_RATIO = 0.10
BASE64_RUN_THRESHOLD = 10_000
MULTIMEDIA_MARKERS = ("data:image/", "data:video/", "data:audio/")  # only with a ;base64, payload
# Container formats: only the size bound applies, content is binary by nature
BINARY_DOCUMENT_EXTENSIONS = frozenset({".docx", ".doc"})

# Directory names that never hold source content (compared lowercase)
EXCLUDED_DIRECTORIES = frozenset(
    {
        ".git",
        ".svn",
        ".hg",
        "node_modules",
        "__pycache__",
        ".vscode",
        ".idea",
        "build",
        "dist",
        "output",
        "out",
        "target",
        "bin",
        "obj",
        ".cache",
        "temp",
        "tmp",
    }
)
TEMP_DIRECTORY_MARKERS = ("temp", "tmp")
ALLOWED_HIDDEN_DIRECTORIES = frozenset({".attachments", ".assets"})

# File names and affixes that are never documents
OS_METADATA_FILES = frozenset({".ds_store", "thumbs.db", "desktop.ini"})
OS_METADATA_PREFIXES = ("._",)
BACKUP_SUFFIXES = ("~", ".bak", ".tmp", ".temp", ".swp", ".orig")
BACKUP_PREFIXES = ("~$",)
TOOL_ARTIFACT_SUFFIXES = (".log", ".mclog")
TOOL_ARTIFACT_MARKERS = ("webhelp",)

# Condition values that exclude a whole document
DEFAULT_EXCLUDED_CONDITIONS = (
    "black",
    "red",
    "gray",
    "grey",
    "deprecated",
    "obsolete",
    "legacy",
    "paused",
    "halted",
    "stopped",
    "discontinued",
    "retired",
    "print-only",
    "printonly",
    "cancelled",
    "canceled",
    "abandoned",
    "shelved",
    "hidden",
    "internal",
    "private",
    "draft",
)

# Image assets
IMAGE_EXTENSIONS = frozenset(
    {".png", ".jpg", ".jpeg", ".gif", ".svg", ".bmp", ".webp", ".tif", ".tiff", ".ico"}
)
IMAGE_OUTPUT_DIR = "Images"
CONVENTIONAL_IMAGE_DIRS = (
    "Content/Images",
    "Content/Resources/Images",
    "Images",
    "Resources/Images",
    "Resources/Multimedia",
)
NON_ASSET_DIRECTORIES = frozenset(
    {
        "snippets",
        "pagelayouts",
        "masterpages",
        "variables",
        "variablesets",
        "tocs",
        "stylesheets",
        "skins",
    }
)
IMAGE_SEARCH_MAX_DEPTH = 6

# Project layout
CONTENT_ROOT_CANDIDATES = ("Content", "Project/Content", "Source/Content")

# Heading-derived filenames
SLUG_MAX_LENGTH = 100

# Fuzzy link matching
FUZZY_MATCH_THRESHOLD = 0.5
CONTAINMENT_SIMILARITY = 0.8

# Quality summary
LOW_QUALITY_THRESHOLD = 70

# Supplementary outputs
DEFAULT_STYLESHEET_NAME = "zendesk-styles.css"
WRITERSIDE_VARIABLES_FILE = "v.list"
ASCIIDOC_VARIABLES_FILE = "includes/variables.adoc"
GLOSSARY_FILE = "glossary.adoc"
MASTER_DOC_STEM = "master"
