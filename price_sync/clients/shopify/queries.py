"""
GraphQL query strings for Shopify Admin API.
"""


# Cheap query used to validate the access token
SHOP_QUERY = '''
query {
  shop {
    name
  }
}
'''

# Variants paged directly, one priceable unit per edge. A full page costs
# about 2 points per variant, under the 1000 point single query limit.
VARIANTS_QUERY = '''
query productVariants($first: Int!, $after: String) {
  productVariants(first: $first, after: $after) {
    edges {
      cursor
      node {
        id
        sku
        title
        price
        product {
          id
          title
        }
      }
    }
    pageInfo {
      hasNextPage
      endCursor
    }
  }
}
'''
