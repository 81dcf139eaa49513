APP_NAME = "Gene Guidance"
APP_SLUG = "gene_guidance"
CONFIG_FILENAME = "config.json"
LOG_FILENAME = "gene_guidance.log"
DB_FILENAME = "gene_guidance.sqlite3"
DATA_DIR_ENV = "GENE_GUIDANCE_DATA_DIR"

DEFAULT_FETCH_WORKERS = 8
