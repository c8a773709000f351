from django.db.models.functions import Lower

from .models import Product


def category_tokens_by_sku(skus):
    """
    Live category lookup for cart SKUs.

    Returns ``{sku_lower: {tokens}}`` where the tokens are the id (as a string)
    and lower-cased slug of the product's category and of every ancestor.
    SKUs match case-insensitively; SKUs without a catalog row are simply
    missing from the result.
    """
    wanted = {sku.strip().lower() for sku in skus if sku and sku.strip()}
    if not wanted:
        return {}

    tokens = {}
    products = (
        Product.objects
        .select_related('category', 'category__parent')
        .annotate(sku_lower=Lower('sku'))
        .filter(sku_lower__in=wanted)
    )
    for product in products:
        found = tokens.setdefault(product.sku_lower, set())
        for category in product.category.lineage():
            found.add(str(category.pk))
            found.add(category.slug.lower())
    return tokens
