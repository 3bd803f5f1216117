"""產品建立 (產品代號由系列流水號產生)"""
from flask import current_app
from deerlab.extensions import db
from deerlab.exceptions import InvalidArgument, NotFound
from deerlab.models.catalog import ProductSeries, Product, Fragrance, Material
from deerlab.services.sequence_service import SequenceService
from deerlab.utils.numbers import to_decimal
from deerlab.utils.transaction import run_in_transaction


class CatalogService:

    @staticmethod
    def create_product(series_id, name, fragrance_id=None, nicotine_mg=0,
                       specific_material_ids=None, user=None):
        if not name or not str(name).strip():
            raise InvalidArgument('產品名稱不可為空。')
        nicotine = to_decimal(nicotine_mg, None)
        if nicotine is None or nicotine < 0:
            raise InvalidArgument('尼古丁濃度必須為非負數。')

        def work():
            series = ProductSeries.query.get(series_id)
            if series is None:
                raise NotFound(f'產品系列 {series_id} 不存在。')

            fragrance = None
            if fragrance_id is not None:
                fragrance = Fragrance.query.get(fragrance_id)
                if fragrance is None:
                    raise NotFound(f'香精 {fragrance_id} 不存在。')

            materials = []
            for material_id in specific_material_ids or []:
                material = Material.query.get(material_id)
                if material is None:
                    raise NotFound(f'物料 {material_id} 不存在。')
                materials.append(material)

            product = Product(
                code=SequenceService.next_product_code(series),
                name=str(name).strip(),
                nicotine_mg=nicotine,
                series_id=series.id,
                fragrance=fragrance,
                specific_materials=materials,
            )
            db.session.add(product)
            db.session.flush()
            return product

        product = run_in_transaction(work, '建立產品', actor=user, target=f'series/{series_id}')
        current_app.logger.info(
            f"使用者 {user.id if user else '-'} 建立產品 {product.code} ({product.name})"
        )
        return product
