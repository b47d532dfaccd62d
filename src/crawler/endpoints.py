"""
DWV site paths.

Every path the scraper touches, in the order it tries them.
"""

# Authentication
LOGIN_PATH = "/login"
ALTERNATE_LOGIN_PATHS = ["/signin", "/auth", "/user/login"]
API_LOGIN_PATHS = [
    "/api/auth/login",
    "/api/login",
    "/auth/login",
    "/api/v1/auth/login",
]

# Session validation probes
VALIDATION_PATHS = ["/dashboard", "/imoveis", "/api/user", "/profile"]

# Extraction: JSON endpoints
API_LISTING_PATHS = [
    "/api/imoveis",
    "/api/properties",
    "/api/empreendimentos",
    "/api/lancamentos",
    "/api/v1/imoveis",
    "/api/v1/properties",
    "/api/listings",
    "/api/search/properties",
    "/api/dashboard/imoveis",
    "/api/user/imoveis",
]

# Extraction: rendered listing pages
LISTING_PAGE_PATHS = [
    "/imoveis",
    "/imoveis?status=disponivel",
    "/imoveis?tipo=apartamento",
    "/imoveis?tipo=casa",
    "/imoveis?cidade=curitiba",
    "/empreendimentos",
    "/lancamentos",
    "/imoveis?categoria=venda",
    "/imoveis?categoria=aluguel",
]

# Extraction: dashboard sections
DASHBOARD_PATHS = [
    "/dashboard",
    "/dashboard/imoveis",
    "/dashboard/empreendimentos",
    "/painel",
    "/painel/imoveis",
]

# Extraction: keyword search
SEARCH_PATH = "/buscar"
SEARCH_QUERIES = ["curitiba", "apartamento", "casa", "disponivel", "venda"]

# Substrings that mark a link as pointing at listings
LISTING_LINK_KEYWORDS = ("imoveis", "properties", "empreendimentos")
