
# Relevance weights for a free-text query (additive, no upper bound)
W_NAME_PREFIX = 100
W_BRAND_PREFIX = 80
W_NAME_CONTAINS = 60
W_BRAND_CONTAINS = 50
W_VARIANT_CONTAINS = 40  # any variant SKU / color / size
W_DESCRIPTION_CONTAINS = 20
POSITION_BOOST_MAX = 100  # 100 - index of the query in the name, first 100 chars only

# Popularity blend over effective counters
POP_PURCHASE_WEIGHT = 5
POP_ADD_WEIGHT = 2
POP_VIEW_WEIGHT = 0.2

# Rating facet tiers ("N stars & up"), highest first
RATING_TIERS = (4, 3, 2, 1)
RATING_MAX = 5
