import os


def env_flag(value: str) -> bool:
	return value.strip().lower() in ("1", "true", "yes", "on")


class Config:
	DATABASE_BACKEND = os.getenv('DATABASE_BACKEND', 'mysql')
	MYSQL_USER = os.getenv('MYSQL_USER', 'root')
	MYSQL_PASSWORD = os.getenv('MYSQL_PASSWORD', '')
	MYSQL_HOST = os.getenv('MYSQL_HOST', 'localhost')
	MYSQL_DB = os.getenv('MYSQL_DB', 'novotok')
	MYSQL_PORT = int(os.getenv('MYSQL_PORT', 3306))
	MYSQL_CHARSET = os.getenv('MYSQL_CHARSET', 'utf8mb4')
	MYSQL_CURSORCLASS = 'DictCursor'
	SQLITE_PATH = os.getenv('SQLITE_PATH', 'novotok.db')

	# No default: the signing key must come from the environment.
	JWT_SECRET_KEY = os.getenv('JWT_SECRET_KEY')
	JWT_ISSUER = os.getenv('JWT_ISSUER', 'novotok-api')
	JWT_AUDIENCE = os.getenv('JWT_AUDIENCE', 'novotok-clients')
	JWT_LIFETIME_SECONDS = int(os.getenv('JWT_LIFETIME_SECONDS', 604800))

	CORS_ORIGINS = os.getenv('CORS_ORIGINS', '*')
	EXPOSE_DB_ERRORS = env_flag(os.getenv('EXPOSE_DB_ERRORS', 'false'))
	LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
	DEFAULT_PER_PAGE = int(os.getenv('DEFAULT_PER_PAGE', 10))
	MAX_PER_PAGE = int(os.getenv('MAX_PER_PAGE', 100))
