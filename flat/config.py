"""Constants shared by the flatmap pipeline."""

# Raster sentinels
LABEL_ID_BACKGROUND = 0
LABEL_ID_BORDER = 1

VALUE_TYPE_DISCRETE = 'discrete'
VALUE_TYPE_CONTINUOUS = 'continuous'

# Landmark and structural label IDs of the cerebellum atlas
LABEL_ID_WHITE_MATTER = 46
LABEL_ID_BRIDGE = 98
LABEL_ID_INCISION = 99
LABEL_ID_ORIGIN = 100

DEFAULT_LABEL_IDS_TO_REMOVE = (
    LABEL_ID_WHITE_MATTER,
    LABEL_ID_BRIDGE,
    LABEL_ID_INCISION,
    LABEL_ID_ORIGIN,
)

# Composite layout
REGION_MAIN = 'main'
REGION_FLOCCULUS = 'flocculus'
REGION_PARAFLOCCULUS = 'paraflocculus'

DEFAULT_VERTICAL_OFFSETS = {
    REGION_MAIN: 0,
    REGION_FLOCCULUS: 2709,
    REGION_PARAFLOCCULUS: 2376,
}
DEFAULT_VERTICAL_PADDING = 0

# Contour processing
OFFSET_SIGN = 1
DEFAULT_CONNECTIVITY = 8

# Intensity colormap
INTENSITY_VMIN = -7.0
INTENSITY_VMAX = 7.0
INTENSITY_NEG_THRESHOLD = -3.28
INTENSITY_POS_THRESHOLD = 3.28
COLORMAP_RESOLUTION = 256
