"""配方 (BOM) 計算"""
from decimal import Decimal
from sqlalchemy import func, or_
from deerlab.models.catalog import Material, Fragrance, Product
from deerlab.schemas import parse_payload, CapacityRequest
from deerlab.utils.numbers import to_decimal, round_quantity, as_number

# 尼古丁換算常數 (mg -> 實際用量)，業務固定值
NICOTINE_DIVISOR = Decimal(250)

# 系統物料的代號 / 名稱關鍵字，category 未標記時使用
SYSTEM_MATERIAL_KEYWORDS = {
    'pg': {
        'codes': ('UV3404503', 'PG'),
        'names': ('PG丙二醇', 'PG', '丙二醇'),
    },
    'vg': {
        'codes': ('UV3400698', 'VG'),
        'names': ('VG甘油', 'VG', '甘油'),
    },
    'nicotine': {
        'codes': ('UV3405520', 'NIC', '丁鹽', '尼古丁'),
        'names': ('丁鹽', '尼古丁', 'NicSalt'),
    },
}


class BomService:

    @staticmethod
    def find_system_material(kind):
        """依分類找出 PG / VG / 尼古丁物料，找不到回傳 None"""
        kind = kind.lower()
        material = Material.query.filter(func.lower(Material.category) == kind) \
            .order_by(Material.id).first()
        if material:
            return material

        keywords = SYSTEM_MATERIAL_KEYWORDS.get(kind)
        if not keywords:
            return None
        return Material.query.filter(or_(
            Material.code.in_(keywords['codes']),
            Material.name.in_(keywords['names']),
        )).order_by(Material.id).first()

    @staticmethod
    def compute_bom(product, target_quantity):
        """
        計算產品在目標產量下所需的物料清單。
        香精、PG、VG、尼古丁依比例計算，專屬物料與系列通用物料每單位一個；
        無法解析的參照直接略過，同一品項合併數量。
        """
        target = to_decimal(target_quantity, Decimal(0))
        lines = {}

        def add_line(item, quantity, unit):
            quantity = round_quantity(quantity)
            key = (item.ITEM_TYPE, item.id)
            if key in lines:
                lines[key]['quantity'] = round_quantity(lines[key]['quantity'] + quantity)
                return
            lines[key] = {
                'itemRef': item.ref_path,
                'itemType': item.ITEM_TYPE,
                'itemId': item.id,
                'name': item.name,
                'code': item.code,
                'unit': unit,
                'quantity': quantity,
            }

        fragrance = product.fragrance
        if fragrance is not None:
            percentage = to_decimal(fragrance.percentage, Decimal(0))
            if percentage > 0:
                add_line(fragrance, target * percentage / 100, 'g')

            for kind, ratio in (('pg', fragrance.pg_ratio), ('vg', fragrance.vg_ratio)):
                ratio = to_decimal(ratio, Decimal(0))
                if ratio <= 0:
                    continue
                material = BomService.find_system_material(kind)
                if material:
                    add_line(material, target * ratio / 100, material.unit or 'g')

        nicotine_mg = to_decimal(product.nicotine_mg, Decimal(0))
        if nicotine_mg > 0:
            material = BomService.find_system_material('nicotine')
            if material:
                add_line(material, target * nicotine_mg / NICOTINE_DIVISOR, material.unit or 'g')

        for material in product.specific_materials:
            add_line(material, target, material.unit or '個')
        if product.series is not None:
            for material in product.series.common_materials:
                add_line(material, target, material.unit or '個')

        return list(lines.values())

    @staticmethod
    def serialize_bom(lines):
        """凍結到工單用的 JSON 格式"""
        return [dict(line, quantity=as_number(line['quantity'])) for line in lines]

    @staticmethod
    def compute_requirements(plans):
        """
        多個生產計畫的物料需求與缺料試算 (唯讀)
        :param plans: [{'productId': 1, 'targetQuantity': 1000}, ...]
        """
        payload = parse_payload(CapacityRequest, {'plans': plans})

        merged = {}
        for plan in payload.plans:
            product = Product.query.get(plan.product_id)
            if product is None:
                continue
            for line in BomService.compute_bom(product, plan.target_quantity):
                key = (line['itemType'], line['itemId'])
                if key in merged:
                    merged[key]['required'] += line['quantity']
                else:
                    merged[key] = dict(line, required=line['quantity'])

        requirements = []
        for key, line in merged.items():
            model = Material if key[0] == 'material' else Fragrance
            item = model.query.get(key[1])
            stock = to_decimal(item.current_stock, Decimal(0)) if item else Decimal(0)
            required = round_quantity(line['required'])
            shortage = max(Decimal(0), required - stock)
            requirements.append({
                'itemRef': line['itemRef'],
                'itemType': line['itemType'],
                'name': line['name'],
                'code': line['code'],
                'unit': line['unit'],
                'required': as_number(required),
                'currentStock': as_number(stock),
                'shortage': as_number(shortage),
                'canProduce': shortage == 0,
            })

        shortage_count = len([r for r in requirements if not r['canProduce']])
        return {
            'requirements': requirements,
            'summary': {
                'canProduceAll': shortage_count == 0,
                'shortageCount': shortage_count,
            },
        }
