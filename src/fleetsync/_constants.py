"""Internal constants shared across the package."""

USER_AGENT = "fleetsync/0.3"
DEFAULT_TIME_ZONE = "America/Sao_Paulo"

# ------------------------------------------------------------------
# Sankhya service protocol
# ------------------------------------------------------------------

SANKHYA_SERVICE_PATH = "/service.sbr"
SANKHYA_ENCODING = "iso-8859-1"
STATUS_OK = "1"
STATUS_UNAUTHORIZED = "3"

SERVICE_LOGIN = "MobileLoginSP.login"
SERVICE_QUERY = "DbExplorerSP.executeQuery"
SERVICE_SAVE = "DatasetSP.save"

VEHICLE_DATASET_ID = "01S"
DEFAULT_TAG_DATASET_ID = "02S"

# ------------------------------------------------------------------
# Position rows
# ------------------------------------------------------------------

TAG_PREFIX = "ISCA"
DEFAULT_LOCATION = "Endereço não disponível"
MAPS_LINK_TEMPLATE = "https://www.google.com/maps?q={lat},{lon}"
IGNITION_ON = "S"
IGNITION_OFF = "N"
