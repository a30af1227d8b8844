"""sheetscope — Find the real table inside messy spreadsheets and browse it."""

__version__ = "0.1.0"

HEADER_KEYWORDS: tuple[str, ...] = (
    "código", "codigo", "code",
    "nombre", "name",
    "referencia", "refer", "reference",
    "descripción", "descripcion", "description",
    "precio", "price",
    "costo", "cost",
    "stock",
    "cantidad", "quantity", "qty",
    "tipo", "type",
    "categoría", "categoria", "category",
    "inventario", "inventory",
    "impuesto", "impues", "tax",
    "estado", "status",
    "unidad", "unit",
    "medida",
    "marca", "brand",
    "modelo", "model",
    "ean", "sku",
    "valor", "value",
    "total",
)
