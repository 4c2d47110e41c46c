# ==========================================
# REFERENCE TABLES (read-only)
# ==========================================
# Weekly checklist: (id, label). Ids are stable, reports reference them.
WEEKLY_INSPECTION_ITEMS = [
    (1, "الماسحات وأذرعتها"),
    (2, "المرايا الجانبيه"),
    (3, "مرأة السائق"),
    (4, "فرش الدواسات"),
    (5, "واقيات الشمس"),
    (6, "مقاعد المركبة"),
    (7, "المصابيح الخارجيه"),
    (8, "البطاريات"),
    (9, "الراديو والمسجل"),
    (10, "عدة المركبة"),
    (11, "مفتاح العجلات"),
    (12, "طفاية"),
    (13, "رافعه"),
    (14, "أطار احتياطي"),
    (15, "سلك توصيل (جطل)"),
    (16, "مثلث مروري"),
    (17, "الزجاج الامامي"),
]

# Tool inventory: (id, name, expected quantity)
TOOL_INVENTORY_ITEMS = [
    (1, "نرمادة عدله هايدروليك", 4),
    (2, "نرمادة عدلة عادية", 4),
    (3, "نرمادة نصف عكفة عادية", 4),
    (4, "نرمادة نصف عكفة هايدروليك", 4),
    (5, "زوايا سرير كبيرة", 5),
    (6, "زوايا 6 فتحات صغيرة", 5),
    (7, "سكة هايدروليك قياس 30", 2),
    (8, "سكة هايدروليك قياس 40", 2),
    (9, "سكة هايدروليك قياس 35", 2),
    (10, "بطارية", 1),
    (11, "براغي كوشة", 100),
    (12, "براغي سلايد", 100),
    (13, "برغي دبدوب", 50),
    (14, "قفل + لبلوب", 50),
    (15, "معالجات جميع الالوان", 1),
    (16, "تيب مسلح", 1),
    (17, "حمالة رف", 25),
    (18, "كتر موس", 2),
    (19, "فيتة", 1),
    (20, "طلقات دريل", 3),
    (21, "مساطر خشب", 10),
    (22, "حساس انارة", 5),
    (23, "شاحنة انارة", 5),
    (24, "شريط انارة بكرة", 1),
    (25, "كاوية + صولدر", 1),
    (26, "حمالة بوري تعالكة", 10),
    (27, "بوري تعالكة", 2),
    (28, "ادبتر لبة", 3),
    (29, "دريل", 3),
]

# Signature slots in display order: (field name, label)
SIGNATURE_ROLES = [
    ("driver_signature", "اسم وتوقيع السائق"),
    ("equipment_manager_signature", "توقيع مسؤول قسم التجهيز"),
    ("logistics_manager_signature", "توقيع مدير قسم اللوجستك"),
    ("warehouse_manager_signature", "توقيع مدير المخازن"),
]

SEVERITY_LABELS = {"low": "بسيط", "medium": "متوسط", "high": "كبير"}
SEVERITY_COLORS = {"low": "#facc15", "medium": "#f97316", "high": "#dc2626"}

BRAND_NAME_AR = "الحسني هوم سنتر"
BRAND_NAME_EN = "ALHASANI HOME CENTER"
