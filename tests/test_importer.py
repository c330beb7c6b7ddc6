"""Tests for the ModelImporter."""

import numpy as np
import pytest
from numpy.testing import assert_array_almost_equal
from scipy.spatial.transform import Rotation

from framegraph import (
    Configuration,
    InvalidDescription,
    JointDescriptor,
    ModelImporter,
    Pose,
    TransformationNotFound,
)
from framegraph.description import Description, Joint, Link, Model, World


def import_model(model: Model, **kwargs) -> Configuration:
    conf = Configuration()
    ModelImporter(conf, **kwargs).import_description(Description(models=[model]))
    return conf


def import_world(world: World, **kwargs) -> Configuration:
    conf = Configuration()
    ModelImporter(conf, **kwargs).import_description(Description(worlds=[world]))
    return conf


def revolute(name: str, parent: str, child: str, lower: float, upper: float, **kwargs) -> Joint:
    return Joint(
        name=name,
        type="revolute",
        parent=parent,
        child=child,
        axis={"xyz": kwargs.pop("xyz", (1, 0, 0)), "limit": {"lower": lower, "upper": upper}, **kwargs},
    )


@pytest.fixture
def model_with_child_links() -> Model:
    return Model(
        name="m",
        links=[Link(name="root_link"), Link(name="child_link")],
        joints=[
            Joint(
                name="j",
                type="revolute",
                parent="root_link",
                child="child_link",
                pose=(1, 2, 3, 0, 0, 2),
                axis={"xyz": (1, 0, 0), "limit": {"lower": 1, "upper": 2}},
            ),
        ],
    )


class TestModelFrames:
    """Tests for model and link frames."""

    def test_single_root_link(self) -> None:
        """A static model with one root link gives two frames and one static edge."""
        conf = import_model(Model(name="m", static=True, links=[Link(name="l")]))
        assert conf.frames == {"m", "m::l"}
        assert len(conf.static_transforms) == 1
        (tr,) = conf.static_transforms
        assert (tr.from_frame, tr.to_frame) == ("m::l", "m")
        assert not conf.example_transforms

    def test_root_model_is_declared(self) -> None:
        """A root model without links still gets its frame."""
        conf = import_model(Model(name="root_model_name"))
        assert conf.has_frame("root_model_name")

    def test_model_within_a_world(self) -> None:
        """Top-level models are not prefixed by the world name."""
        conf = import_world(World(name="world_name", models=[Model(name="root_model_name")]))
        assert conf.frames == {"root_model_name", "world_name"}

    def test_root_link_pose(self) -> None:
        """Root links are attached to the model with their pose."""
        conf = import_model(
            Model(name="m", links=[Link(name="root_link", pose=(1, 2, 3, 0, 0, 2))]),
        )
        tr = conf.transformation_for("m::root_link", "m")
        assert_array_almost_equal(tr.translation, [1, 2, 3])
        assert_array_almost_equal(tr.rotation.as_rotvec(), [0, 0, 2])

    def test_every_root_link_attached(self) -> None:
        """All links without incoming joint are attached to the model."""
        conf = import_model(Model(name="m", links=[Link(name="a"), Link(name="b")]))
        assert conf.has_transform("m::a", "m")
        assert conf.has_transform("m::b", "m")

    def test_canonical_link(self) -> None:
        """The canonical link is the declared one, or the first link."""
        conf = Configuration()
        importer = ModelImporter(conf)
        importer.import_model(Model(name="m", links=[Link(name="a"), Link(name="b")]))
        importer.import_model(
            Model(name="n", canonical_link="b", links=[Link(name="a"), Link(name="b")]),
        )
        assert importer.canonical_links == {"m": "m::a", "n": "n::b"}


class TestModelToParent:
    """Tests for the transform between a model and its parent."""

    def test_static_model_in_world(self) -> None:
        """Static models are attached statically to the world."""
        conf = import_world(
            World(name="w", models=[Model(name="m", static=True, pose=(1, 0, 0, 0, 0, 0))]),
        )
        assert_array_almost_equal(conf.transformation_for("m", "w").translation, [1, 0, 0])

    def test_free_model_in_world(self) -> None:
        """Non-static models only get an example transform to the world."""
        conf = import_world(World(name="w", models=[Model(name="m", pose=(1, 0, 0, 0, 0, 0))]))
        assert not conf.has_transform("m", "w")
        assert_array_almost_equal(conf.example_transform_for("m", "w").translation, [1, 0, 0])

    def test_root_model_has_no_parent(self) -> None:
        """A model imported outside any world is not attached to anything."""
        conf = import_model(Model(name="m", static=True, pose=(1, 0, 0, 0, 0, 0)))
        assert conf.frames == {"m"}
        assert not conf.transforms

    def test_nested_model_attached_to_parent(self) -> None:
        """Nested models are attached to their parent model."""
        conf = import_model(
            Model(
                name="root",
                models=[Model(name="sub", static=True, pose=(0, 1, 0, 0, 0, 0))],
            ),
        )
        tr = conf.transformation_for("root::sub", "root")
        assert_array_almost_equal(tr.translation, [0, 1, 0])

    def test_statically_connected_submodel_not_attached(self) -> None:
        """No model => parent transform when joints already connect them statically."""
        conf = import_model(
            Model(
                name="root",
                links=[Link(name="l")],
                joints=[Joint(name="fix", type="fixed", parent="l", child="sub::k")],
                models=[Model(name="sub", links=[Link(name="k", pose=(0, 0, 1, 0, 0, 0))])],
            ),
        )
        assert not conf.example_transforms
        chain = conf.transformation_chain("root::sub", "root")
        assert_array_almost_equal(chain.compose().translation, [0, 0, 0])


class TestLinkComposition:
    """Tests for poses of links in nested models."""

    @pytest.fixture
    def nested(self) -> Model:
        return Model(
            name="root",
            links=[Link(name="l", pose=(1, 0, 0, 0, 0, 0))],
            joints=[Joint(name="cross", type="fixed", parent="l", child="sub::inner::k")],
            models=[
                Model(
                    name="sub",
                    pose=(0, 0, 0, 0, 0, np.pi / 2),
                    models=[
                        Model(
                            name="inner",
                            pose=(1, 0, 0, 0, 0, 0),
                            links=[Link(name="k", pose=(0, 0, 1, 0, 0, 0))],
                        ),
                    ],
                ),
            ],
        )

    def test_namespaced_frames(self, nested: Model) -> None:
        """Links of nested models are declared under their model namespace."""
        conf = import_model(nested)
        assert {"root::sub", "root::sub::inner", "root::sub::inner::k"} <= conf.frames

    def test_cross_model_joint_uses_composed_pose(self, nested: Model) -> None:
        """Joints to nested links compose submodel poses outer to inner."""
        conf = import_model(nested)
        tr = conf.transformation_for("root::sub::inner::k", "root::l")
        # k in root: rotate (1, 0, 1) by 90 deg about z -> (0, 1, 1); l is at (1, 0, 0)
        assert_array_almost_equal(tr.translation, [-1, 1, 1])
        assert_array_almost_equal(tr.rotation.as_rotvec(), [0, 0, np.pi / 2])

    def test_cross_model_joint_direction(self) -> None:
        """Cross-model joints go from the child link to the parent link."""
        conf = import_model(
            Model(
                name="root",
                links=[Link(name="l")],
                joints=[Joint(name="j", type="fixed", parent="submodel::l", child="l")],
                models=[Model(name="submodel", links=[Link(name="l")])],
            ),
        )
        tr = conf.transformation_for("root::l", "root::submodel::l")
        assert tr.from_frame == "root::l"
        assert tr.to_frame == "root::submodel::l"
        assert not tr.inverted

    def test_unreferenced_nested_link_declared(self) -> None:
        """Nested links without joints still get a frame."""
        conf = import_model(
            Model(name="root", models=[Model(name="submodel", links=[Link(name="l")])]),
        )
        assert conf.has_frame("root::submodel::l")


class TestJoints:
    """Tests for joint handling."""

    def test_fixed_joint_is_static(self) -> None:
        """A fixed joint becomes a static child => parent transform."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c", pose=(0, 0, 2, 0, 0, 0))],
                joints=[Joint(name="j", type="fixed", parent="p", child="c")],
            ),
        )
        assert_array_almost_equal(conf.transformation_for("m::c", "m::p").translation, [0, 0, 2])
        assert not conf.has_frame("m::j_pre")
        # the child link is not a root link
        assert not conf.has_transform("m::c", "m")

    def test_zero_range_joint_is_static(self) -> None:
        """A movable joint type with lower == upper is treated as rigid."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c")],
                joints=[revolute("j", "p", "c", 0.5, 0.5)],
            ),
        )
        assert conf.has_transform("m::c", "m::p")
        assert not conf.joints

    def test_movable_joint_frames(self) -> None:
        """A movable joint creates pre/post frames and two static transforms."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c")],
                joints=[revolute("j", "p", "c", -1, 2)],
            ),
        )
        assert {"m::j_pre", "m::j_post"} <= conf.frames
        joint_statics = [
            t for t in conf.static_transforms if {t.from_frame, t.to_frame} & {"m::j_pre", "m::j_post"}
        ]
        assert len(joint_statics) == 2
        assert conf.has_transform("m::j_post", "m::c")
        assert conf.has_transform("m::j_pre", "m::p")
        assert not conf.has_transform("m::j_post", "m::j_pre")

        example = conf.example_transform_for("m::j_post", "m::j_pre")
        assert_array_almost_equal(example.translation, [0, 0, 0])
        assert_array_almost_equal(example.rotation.as_rotvec(), [0.5, 0, 0])

    def test_post_to_child_is_joint_pose(self, model_with_child_links: Model) -> None:
        """post => child is the joint pose relative to its child link."""
        conf = import_model(model_with_child_links)
        tr = conf.transformation_for("m::j_post", "m::child_link")
        assert_array_almost_equal(tr.translation, [1, 2, 3])
        assert_array_almost_equal(tr.rotation.as_rotvec(), [0, 0, 2])

    def test_pre_to_parent(self) -> None:
        """pre => parent is child_to_parent * joint_to_child."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p", pose=(1, 0, 0, 0, 0, 0)), Link(name="c", pose=(0, 3, 0, 0, 0, 0))],
                joints=[
                    Joint(
                        name="j",
                        type="prismatic",
                        parent="p",
                        child="c",
                        pose=(0, 0, 1, 0, 0, 0),
                        axis={"limit": {"lower": 0, "upper": 1}},
                    ),
                ],
            ),
        )
        tr = conf.transformation_for("m::j_pre", "m::p")
        assert_array_almost_equal(tr.translation, [-1, 3, 1])

    def test_example_transform_at_midpoint(self, model_with_child_links: Model) -> None:
        """The example transform rotates to the middle of the joint range."""
        conf = import_model(model_with_child_links)
        tr = conf.example_transform_for("m::j_post", "m::j_pre")
        assert_array_almost_equal(tr.translation, [0, 0, 0])
        assert tr.pose.approx_equal(Pose(rotation=Rotation.from_rotvec([1.5, 0, 0])))

    def test_prismatic_midpoint(self) -> None:
        """Prismatic joints translate along the axis."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c")],
                joints=[
                    Joint(
                        name="slide",
                        type="prismatic",
                        parent="p",
                        child="c",
                        axis={"xyz": (0, 2, 0), "limit": {"lower": 0.2, "upper": 0.4}},
                    ),
                ],
            ),
        )
        tr = conf.example_transform_for("m::slide_post", "m::slide_pre")
        assert_array_almost_equal(tr.translation, [0, 0.3, 0])

    def test_continuous_joint_is_movable(self) -> None:
        """Continuous joints are movable and illustrated at zero."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c")],
                joints=[Joint(name="wheel", type="continuous", parent="p", child="c")],
            ),
        )
        tr = conf.example_transform_for("m::wheel_post", "m::wheel_pre")
        assert tr.pose.approx_equal(Pose.identity())

    def test_axis_in_parent_model_frame(self) -> None:
        """Axes in the model frame are re-expressed in the joint frame."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c", pose=(0, 0, 0, 0, 0, np.pi / 2))],
                joints=[
                    revolute("j", "p", "c", 0, 1, xyz=(1, 0, 0), use_parent_model_frame=True),
                ],
            ),
        )
        tr = conf.example_transform_for("m::j_post", "m::j_pre")
        # model x axis is the joint's -y axis once the child is rotated by 90 deg about z
        assert_array_almost_equal(tr.rotation.as_rotvec(), [0, -0.5, 0])

    def test_joint_registration(self, model_with_child_links: Model) -> None:
        """Movable joints are registered on their (post, pre) pair."""
        conf = import_model(model_with_child_links)
        descriptor = conf.joint_for("m::j_post", "m::j_pre")
        assert isinstance(descriptor, JointDescriptor)
        assert descriptor.name == "j"
        assert descriptor.full_name == "m::j"
        assert descriptor.parent_frame == "m::root_link"
        assert descriptor.child_frame == "m::child_link"

    def test_full_name_scoped_by_world(self, model_with_child_links: Model) -> None:
        """Inside a world the resolver sees world-scoped joint names."""
        calls: list[str] = []
        world = World(name="w", models=[Model(name="outer", models=[model_with_child_links])])
        conf = import_world(world, producer_resolver=lambda joint: calls.append(joint.full_name))
        assert calls == ["w::outer::m::j"]
        assert conf.has_frame("outer::m::j_post")

    def test_ball_joint_is_static(self) -> None:
        """Joints without a single motion axis become static transforms."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="p"), Link(name="c", pose=(0, 0, 1, 0, 0, 0))],
                joints=[Joint(name="j", type="ball", parent="p", child="c")],
            ),
        )
        assert not conf.has_frame("m::j_pre")
        assert_array_almost_equal(conf.transformation_for("m::c", "m::p").translation, [0, 0, 1])

    def test_producer_resolver_creates_dynamic_transform(self, model_with_child_links: Model) -> None:
        """A producer returned by the resolver becomes a dynamic post => pre transform."""
        calls: list[str] = []

        def resolver(joint: JointDescriptor) -> str:
            calls.append(joint.full_name)
            return "producer"

        conf = import_model(model_with_child_links, producer_resolver=resolver)
        assert calls == ["m::j"]
        tr = conf.transformation_for("m::j_post", "m::j_pre")
        assert tr.producer == "producer"
        assert conf.example_transform_for("m::j_post", "m::j_pre") is not None

    def test_producer_resolver_returning_none(self, model_with_child_links: Model) -> None:
        """Without producer the joint only has its example transform."""
        conf = import_model(model_with_child_links, producer_resolver=lambda joint: None)
        assert not conf.dynamic_transforms
        with pytest.raises(TransformationNotFound):
            conf.transformation_chain("m::child_link", "m")

    def test_resolved_joint_connects_links(self, model_with_child_links: Model) -> None:
        """With a producer, child links resolve to the model through the joint."""
        conf = import_model(model_with_child_links, producer_resolver=lambda joint: joint.full_name)
        static, dynamic = conf.transformation_chain("m::child_link", "m").partition()
        assert len(static) == 3
        assert [d.transform.producer for d in dynamic] == ["m::j"]

    def test_unknown_link_raises(self) -> None:
        """Joints must reference links of the model."""
        with pytest.raises(InvalidDescription, match="unknown link 'nope'"):
            import_model(
                Model(
                    name="m",
                    links=[Link(name="p")],
                    joints=[Joint(name="j", type="fixed", parent="p", child="nope")],
                ),
            )


class TestWorldLink:
    """Tests for the special 'world' link."""

    @pytest.fixture
    def world(self) -> World:
        return World(
            name="w",
            models=[
                Model(
                    name="root",
                    links=[Link(name="parent_of_world"), Link(name="child_of_world")],
                    joints=[
                        Joint(name="j1", type="fixed", parent="parent_of_world", child="world"),
                        Joint(name="j2", type="fixed", parent="world", child="child_of_world"),
                    ],
                ),
            ],
        )

    def test_world_as_child(self, world: World) -> None:
        """A joint with 'world' as child connects the world frame to the parent link."""
        conf = import_world(world)
        tr = conf.transformation_for("w", "root::parent_of_world")
        assert not tr.inverted
        assert tr.pose.approx_equal(Pose.identity())

    def test_world_as_parent(self, world: World) -> None:
        """A joint with 'world' as parent connects the child link to the world frame."""
        conf = import_world(world)
        tr = conf.transformation_for("root::child_of_world", "w")
        assert not tr.inverted
        assert tr.pose.approx_equal(Pose.identity())

    def test_no_model_to_world_transform(self, world: World) -> None:
        """The model itself is not attached to the world."""
        conf = import_world(world)
        assert not conf.has_transform("root", "w")
        with pytest.raises(TransformationNotFound):
            conf.example_transform_for("root", "w")

    def test_world_pose_composes_model_poses(self) -> None:
        """The world link pose accounts for every enclosing model pose."""
        conf = import_world(
            World(
                name="w",
                models=[
                    Model(
                        name="outer",
                        pose=(1, 0, 0, 0, 0, 0),
                        models=[
                            Model(
                                name="inner",
                                pose=(0, 2, 0, 0, 0, 0),
                                links=[Link(name="l", pose=(0, 0, 3, 0, 0, 0))],
                                joints=[Joint(name="j", type="fixed", parent="world", child="l")],
                            ),
                        ],
                    ),
                ],
            ),
        )
        tr = conf.transformation_for("outer::inner::l", "w")
        assert_array_almost_equal(tr.translation, [1, 2, 3])

    def test_movable_world_joint(self) -> None:
        """Movable world joints attach the pre frame to the world frame."""
        conf = import_world(
            World(
                name="w",
                models=[
                    Model(
                        name="arm",
                        links=[Link(name="base")],
                        joints=[revolute("j", "world", "base", 0, 1)],
                    ),
                ],
            ),
        )
        assert conf.has_transform("arm::j_pre", "w")
        assert conf.has_transform("arm::j_post", "arm::base")
        with pytest.raises(TransformationNotFound):
            conf.example_transform_for("arm", "w")


class TestImportOptions:
    """Tests for ImportOptions."""

    def test_exclude_models(self) -> None:
        """Excluded models are skipped with their content."""
        conf = import_world(
            World(name="w", models=[Model(name="keep"), Model(name="skip", links=[Link(name="l")])]),
            options={"exclude_models": ["skip"]},
        )
        assert conf.frames == {"w", "keep"}

    def test_exclude_nested_model_by_scoped_name(self) -> None:
        """Nested models can be excluded by their scoped name."""
        conf = import_model(
            Model(name="root", models=[Model(name="sub", links=[Link(name="l")])]),
            options={"exclude_models": ["root::sub"]},
        )
        assert conf.frames == {"root"}

    def test_world_link_outside_world(self) -> None:
        """Outside a world, the world link maps to the configured frame."""
        conf = import_model(
            Model(
                name="m",
                links=[Link(name="l")],
                joints=[Joint(name="j", type="fixed", parent="ground", child="l")],
            ),
            options={"world_link": "ground"},
        )
        assert conf.has_transform("m::l", "ground")
