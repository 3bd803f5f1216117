def paginated(pagination, serialize):
    """把 Flask-SQLAlchemy 的分頁結果轉成 JSON 結構"""
    return {
        'success': True,
        'items': [serialize(item) for item in pagination.items],
        'page': pagination.page,
        'perPage': pagination.per_page,
        'total': pagination.total,
        'pages': pagination.pages,
    }
