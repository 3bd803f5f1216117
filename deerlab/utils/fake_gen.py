import random
from faker import Faker
from faker.providers import BaseProvider

class DeerLabProvider(BaseProvider):
    """
    DeerLab 專用假資料產生器
    產生香精、物料與供應商名稱，供 flask forge 使用
    """

    # 香精口味
    flavors = [
        '芒果', '荔枝', '葡萄', '西瓜', '薄荷', '藍莓', '草莓', '蜜桃',
        '百香果', '檸檬', '烏龍茶', '可樂', '菸草', '香草', '哈密瓜', '冰鎮'
    ]

    flavor_suffixes = ['冰沙', '氣泡', '特調', '原味', '雙重', '經典']

    # 一般物料
    material_names = [
        ('煙彈空殼', '個', '包材'), ('陶瓷芯', '個', '零件'), ('棉芯', '個', '零件'),
        ('外盒', '個', '包材'), ('說明書', '張', '包材'), ('封口貼', '張', '包材'),
        ('玻璃瓶 30ml', '個', '容器'), ('滴管蓋', '個', '容器')
    ]

    company_suffixes = ['香料', '化工', '實業', '包材', '科技', '貿易']

    def fragrance_name(self):
        return f"{self.random_element(self.flavors)}{self.random_element(self.flavor_suffixes)}"

    def supply_item(self):
        """回傳 (名稱, 單位, 分類)"""
        return self.random_element(self.material_names)

    def supplier_company(self):
        prefix = self.generator.last_name()
        return f"{prefix}{self.random_element(self.company_suffixes)}"

    def stock_quantity(self, low=0, high=5000):
        return random.randint(low, high)

# 初始化 Faker 並加入自訂 Provider
fake = Faker('zh_TW')
fake.add_provider(DeerLabProvider)
